"""Replaying the changes of one commit onto the working tree.

Merge, cherry-pick, rebase and stash application are all expressed as "apply what a commit changed
relative to a base commit on top of HEAD", so they share one conflict behaviour."""

import logging
from dataclasses import dataclass, field

from .binary import is_binary
from .constants import HEAD_LABEL, SHORT_HASH_LENGTH
from .merge import merge_text
from .repository import Repository

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """The outcome of replaying a commit."""

    conflicted_paths: list[str] = field(default_factory=list)
    changed_paths: list[str] = field(default_factory=list)
    message: str = ''
    debug: dict[str, int] = field(default_factory=dict)

    @property
    def is_clean(self) -> bool:
        return not self.conflicted_paths


def apply_commit_changes(repo: Repository, commit_oid: str, head_oid: str | None, parent_index: int = 0, *,
                         base_oid: str | None = None, head_label: str = HEAD_LABEL, target_label: str | None = None,
                         stage_changes: bool = True) -> ApplyResult:
    """Apply the changes a commit introduced relative to one of its parents on top of HEAD.

    Every path present in the parent, the commit or HEAD is classified by its three blob ids:

    - unchanged by the commit, or already equal in HEAD: skipped;
    - deleted by the commit: removed, unless HEAD changed it too, which is a conflict;
    - added or modified by the commit: three-way merged with HEAD's version.

    Conflicted paths are written to the working tree with conflict markers and left unstaged.
    Binary conflicts keep HEAD's bytes and, when staging, drop the path from the index until it is staged again.
    Cleanly merged paths that differ from HEAD are written and staged.

    :param repo: The repository to apply the changes in.
    :param commit_oid: The commit whose changes are replayed.
    :param head_oid: The commit the changes are applied on top of. None stands for an empty tree.
    :param parent_index: Which parent of the commit the changes are taken relative to.
        A missing parent stands for an empty tree.
    :param base_oid: An explicit base commit overriding the chosen parent, e.g. the merge base of a true merge.
    :param head_label: The label of HEAD's side of a conflict.
    :param target_label: The label of the commit's side of a conflict. Defaults to the commit's short id.
    :param stage_changes: Whether cleanly applied changes are recorded in the index.
    :return: The conflicted and changed paths, in path order, and the commit message.
    :raises RepositoryError: If a commit, tree or blob cannot be read."""
    commit = repo.read_commit(commit_oid)
    if base_oid is None and parent_index < len(commit.parents):
        base_oid = commit.parents[parent_index]
    if target_label is None:
        target_label = commit_oid[:SHORT_HASH_LENGTH]

    parent_blobs = repo.blob_index(base_oid)
    target_blobs = repo.blob_index(commit_oid)
    head_blobs = repo.blob_index(head_oid)
    paths = sorted(set(parent_blobs) | set(target_blobs) | set(head_blobs))

    result = ApplyResult(message=commit.message,
                         debug={'parent_count': len(parent_blobs),
                                'target_count': len(target_blobs),
                                'head_count': len(head_blobs),
                                'paths_count': len(paths)})

    for path in paths:
        parent_blob = parent_blobs.get(path)
        target_blob = target_blobs.get(path)
        if parent_blob == target_blob:
            continue

        head_blob = head_blobs.get(path)
        if head_blob == target_blob:
            continue

        if target_blob is None:
            if head_blob is not None and head_blob != parent_blob:
                head_content = repo.read_blob(head_blob)
                parent_content = _read_optional(repo, parent_blob)
                if is_binary(head_content) or is_binary(parent_content):
                    repo.write_file(path, head_content)
                    _mark_unmerged(repo, path, stage_changes)
                else:
                    merged = merge_text(parent_content.decode('utf-8'), head_content.decode('utf-8'), '',
                                        head_label, target_label)
                    repo.write_file(path, merged.merged_text)
                result.conflicted_paths.append(path)
                logger.debug('%s: deleted by %s but modified in HEAD', path, target_label)
                continue

            if stage_changes:
                repo.remove(path)
            else:
                repo.delete_file(path)
            result.changed_paths.append(path)
            continue

        target_content = repo.read_blob(target_blob)
        if head_blob == parent_blob:
            repo.write_file(path, target_content)
            _record_change(repo, path, stage_changes, result)
            continue

        parent_content = _read_optional(repo, parent_blob)
        head_content = _read_optional(repo, head_blob)
        if is_binary(parent_content) or is_binary(head_content) or is_binary(target_content):
            repo.write_file(path, head_content)
            _mark_unmerged(repo, path, stage_changes)
            result.conflicted_paths.append(path)
            logger.debug('%s: binary content changed on both sides', path)
            continue

        head_text = head_content.decode('utf-8')
        merged = merge_text(parent_content.decode('utf-8'), head_text, target_content.decode('utf-8'),
                            head_label, target_label)
        if not merged.is_clean:
            repo.write_file(path, merged.merged_text)
            result.conflicted_paths.append(path)
            logger.debug('%s: conflicting changes', path)
            continue
        if merged.merged_text == head_text:
            continue

        repo.write_file(path, merged.merged_text)
        _record_change(repo, path, stage_changes, result)

    logger.debug('Applied %s onto %s: %d changed, %d conflicted', commit_oid, head_oid,
                 len(result.changed_paths), len(result.conflicted_paths))
    return result


def _read_optional(repo: Repository, blob_hash: str | None) -> bytes:
    return repo.read_blob(blob_hash) if blob_hash else b''


def _mark_unmerged(repo: Repository, path: str, stage_changes: bool) -> None:
    # Left out of the index until the user stages a resolution.
    if stage_changes:
        repo.remove(path, cached=True)


def _record_change(repo: Repository, path: str, stage_changes: bool, result: ApplyResult) -> None:
    if stage_changes:
        repo.stage(path)
    result.changed_paths.append(path)
