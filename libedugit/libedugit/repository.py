"""libedugit repository management."""

import json
import logging
import shutil
from collections import deque
from collections.abc import Callable, Generator, Iterable
from dataclasses import dataclass
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Concatenate, ParamSpec, TypeVar

from . import Commit, Tree, TreeRecord, TreeRecordType
from .binary import to_bytes
from .constants import (DEFAULT_BRANCH, DEFAULT_REPO_DIR, HASH_CHARSET, HASH_LENGTH, HEAD_FILE, HEAD_REF, HEADS_DIR,
                        INDEX_FILE, MIN_SHORT_HASH_LENGTH, OBJECTS_SUBDIR, REFS_DIR, SEQUENCER_DIR, STASH_FILE)
from .plumbing import (hash_string, load_blob, load_commit, load_tree, save_blob, save_commit, save_file_content,
                       save_tree)
from .ref import HashRef, Ref, RefError, SymRef, read_ref, write_ref
from .sequencer import Sequencer
from .stash import StashStore

logger = logging.getLogger(__name__)

P = ParamSpec('P')
R = TypeVar('R')


class RepositoryError(Exception):
    """Exception raised for repository-related errors."""


class RepositoryNotFoundError(RepositoryError):
    """Exception raised when a repository is not found."""


@dataclass
class LogEntry:
    """A class representing a log entry for a branch or commit history."""

    commit_ref: HashRef
    commit: Commit


@dataclass(frozen=True)
class StatusEntry:
    """The blob id of one path in HEAD, the index and the working tree (None where absent)."""

    path: str
    head: str | None
    index: str | None
    workdir: str | None

    @property
    def untracked(self) -> bool:
        return self.head is None and self.index is None and self.workdir is not None

    @property
    def staged(self) -> bool:
        return self.head != self.index

    @property
    def unstaged(self) -> bool:
        return self.index != self.workdir


class Repository:
    """Represents a libedugit repository.

    The repository owns the object database, the refs, the index and the working tree.
    It is the storage collaborator the merge, cherry-pick and rebase engine reads from and writes into."""

    def __init__(self, working_dir: Path | str, repo_dir: Path | str | None = None) -> None:
        """Initialize a Repository instance. The repository is not created on disk until `init()` is called.

        :param working_dir: The working directory where the repository will be located.
        :param repo_dir: The name of the repository directory within the working directory. Defaults to '.edugit'."""
        self.working_dir = Path(working_dir)

        if repo_dir is None:
            self.repo_dir = Path(DEFAULT_REPO_DIR)
        else:
            self.repo_dir = Path(repo_dir)

    def init(self, default_branch: str = DEFAULT_BRANCH) -> None:
        """Initialize a new repository in the working directory.

        :param default_branch: The name of the default branch to create. Defaults to 'main'.
        :raises FileExistsError: If the repository already exists."""
        self.repo_path().mkdir(parents=True)
        self.objects_dir().mkdir()
        self.heads_dir().mkdir(parents=True)

        self.add_branch(default_branch)
        write_ref(self.head_file(), branch_ref(default_branch))
        self._write_index({})

    def exists(self) -> bool:
        """Check if the repository exists in the working directory.

        :return: True if the repository exists, False otherwise."""
        return self.repo_path().exists()

    def repo_path(self) -> Path:
        """Get the path to the repository directory.

        :return: The path to the repository directory."""
        return self.working_dir / self.repo_dir

    def objects_dir(self) -> Path:
        """Get the path to the objects directory within the repository.

        :return: The path to the objects directory."""
        return self.repo_path() / OBJECTS_SUBDIR

    def refs_dir(self) -> Path:
        """Get the path to the refs directory within the repository.

        :return: The path to the refs directory."""
        return self.repo_path() / REFS_DIR

    def heads_dir(self) -> Path:
        """Get the path to the heads directory within the repository.

        :return: The path to the heads directory."""
        return self.refs_dir() / HEADS_DIR

    def head_file(self) -> Path:
        """Get the path to the HEAD file within the repository.

        :return: The path to the HEAD file."""
        return self.repo_path() / HEAD_FILE

    def index_file(self) -> Path:
        return self.repo_path() / INDEX_FILE

    @staticmethod
    def requires_repo(func: Callable[Concatenate['Repository', P], R]) -> \
            Callable[Concatenate['Repository', P], R]:
        """Decorate a Repository method to ensure that the repository exists before executing the method.

        :param func: The method to decorate.
        :return: A wrapper function that checks for the repository's existence."""

        @wraps(func)
        def _verify_repo(self: 'Repository', *args: P.args, **kwargs: P.kwargs) -> R:
            if not self.exists():
                msg = f'Repository not initialized at {self.repo_path()}'
                raise RepositoryNotFoundError(msg)

            return func(self, *args, **kwargs)

        return _verify_repo

    @requires_repo
    def sequencer(self) -> Sequencer:
        """Get the store of in-progress merge, cherry-pick and rebase markers."""
        return Sequencer(self.repo_path() / SEQUENCER_DIR)

    @requires_repo
    def stash_store(self) -> StashStore:
        return StashStore(self.repo_path() / STASH_FILE)

    # Refs

    @requires_repo
    def head_ref(self) -> Ref | None:
        """Get the current HEAD reference of the repository.

        :return: The current HEAD reference, which can be a HashRef or SymRef.
        :raises RepositoryError: If the HEAD ref file does not exist.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        head_file = self.head_file()
        if not head_file.exists():
            msg = 'HEAD ref file does not exist'
            raise RepositoryError(msg)

        return read_ref(head_file)

    @requires_repo
    def head_commit(self) -> HashRef | None:
        """Return a ref to the current commit reference of the HEAD.

        :return: The current commit reference, or None if HEAD does not point to a commit yet.
        :raises RepositoryError: If the HEAD ref file does not exist.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        # If HEAD is a symbolic reference, resolve it to a hash
        resolved_ref = self.resolve_ref(self.head_ref())
        if resolved_ref:
            return resolved_ref
        return None

    @requires_repo
    def current_branch(self) -> str | None:
        """Return the name of the branch HEAD points to, or None when HEAD is detached."""
        head_ref = self.head_ref()
        if isinstance(head_ref, SymRef) and head_ref.startswith(f'{HEADS_DIR}/'):
            return head_ref[len(HEADS_DIR) + 1:]
        return None

    @requires_repo
    def refs(self) -> list[SymRef]:
        """Get a list of all symbolic references in the repository, relative to the refs directory.

        :return: A list of SymRef objects such as ``heads/main``.
        :raises RepositoryError: If the refs directory does not exist or is not a directory.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        refs_dir = self.refs_dir()
        if not refs_dir.exists() or not refs_dir.is_dir():
            msg = f'Refs directory does not exist or is not a directory: {refs_dir}'
            raise RepositoryError(msg)

        return [SymRef(ref_file.relative_to(refs_dir).as_posix()) for ref_file in refs_dir.rglob('*')
                if ref_file.is_file()]

    @requires_repo
    def resolve_ref(self, ref: Ref | str | None) -> HashRef | None:
        """Resolve a reference to a HashRef, following symbolic references if necessary.

        :param ref: The reference to resolve. This can be a HashRef, SymRef, or a string naming HEAD,
            a branch, a ref path or a (possibly abbreviated) object id.
        :return: The resolved HashRef or None if the reference is unborn.
        :raises RefError: If the reference is invalid or cannot be resolved.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        match ref:
            case HashRef():
                return ref
            case SymRef():
                if ref.upper() == HEAD_REF:
                    return self.resolve_ref(self.head_ref())

                ref_file = self.refs_dir() / ref
                if not ref_file.is_file():
                    msg = f'Invalid reference: {ref}'
                    raise RefError(msg)
                return self.resolve_ref(read_ref(ref_file))
            case str():
                # Try to figure out what kind of ref it is by looking at the refs directory
                if ref.upper() == HEAD_REF:
                    return self.resolve_ref(SymRef(HEAD_REF))
                if ref and (self.heads_dir() / ref).is_file():
                    return self.resolve_ref(branch_ref(ref))
                if ref in self.refs():
                    return self.resolve_ref(SymRef(ref))
                if len(ref) == HASH_LENGTH and all(c in HASH_CHARSET for c in ref):
                    return HashRef(ref)
                if len(ref) >= MIN_SHORT_HASH_LENGTH and all(c in HASH_CHARSET for c in ref):
                    return self.expand_oid(ref)

                msg = f'Invalid reference: {ref}'
                raise RefError(msg)
            case None:
                return None
            case _:
                msg = f'Invalid reference type: {type(ref)}'
                raise RefError(msg)

    @requires_repo
    def expand_oid(self, prefix: str) -> HashRef:
        """Expand an abbreviated object id to the full id of the single object it names.

        :raises RefError: If no object or more than one object matches the prefix."""
        bucket = self.objects_dir() / prefix[:2]
        matches = sorted(obj.name for obj in bucket.iterdir() if obj.name.startswith(prefix)) \
            if bucket.is_dir() else []

        if not matches:
            msg = f'Invalid reference: {prefix}'
            raise RefError(msg)
        if len(matches) > 1:
            msg = f'Short object id {prefix} is ambiguous'
            raise RefError(msg)

        return HashRef(matches[0])

    @requires_repo
    def resolve_commitish(self, expression: str) -> HashRef:
        """Resolve a commit-ish expression such as ``HEAD~2`` or ``feature^2`` to a commit id.

        :raises InvalidRefError: If the expression is malformed or names a missing ancestor."""
        from .commitish import resolve_commitish

        return resolve_commitish(self, expression)

    @requires_repo
    def update_ref(self, ref_name: str, new_ref: Ref) -> None:
        """Update a symbolic reference in the repository.

        :param ref_name: The name of the symbolic reference to update.
        :param new_ref: The new reference value to set.
        :raises RepositoryError: If the reference does not exist.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        ref_path = self.refs_dir() / ref_name

        if not ref_path.exists():
            msg = f'Reference "{ref_name}" does not exist.'
            raise RepositoryError(msg)

        write_ref(ref_path, new_ref)

    @requires_repo
    def set_head(self, ref: Ref) -> None:
        """Point HEAD at a branch (SymRef) or detach it at a commit (HashRef) without touching any files."""
        write_ref(self.head_file(), ref)

    @requires_repo
    def add_branch(self, branch: str, target: HashRef | None = None) -> None:
        """Add a new branch to the repository.

        :param branch: The name of the branch to add.
        :param target: The commit the branch points to. An unborn (empty) branch is created when omitted.
        :raises ValueError: If the branch name is empty.
        :raises RepositoryError: If the branch already exists.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        if not branch:
            msg = 'Branch name is required'
            raise ValueError(msg)
        if self.branch_exists(SymRef(branch)):
            msg = f'Branch "{branch}" already exists'
            raise RepositoryError(msg)

        branch_path = self.heads_dir() / branch
        if target is None:
            branch_path.parent.mkdir(parents=True, exist_ok=True)
            branch_path.touch()
        else:
            write_ref(branch_path, target)

    @requires_repo
    def delete_branch(self, branch: str) -> None:
        """Delete a branch from the repository.

        :param branch: The name of the branch to delete.
        :raises ValueError: If the branch name is empty.
        :raises RepositoryError: If the branch does not exist or if it is the last branch in the repository.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        if not branch:
            msg = 'Branch name is required'
            raise ValueError(msg)
        branch_path = self.heads_dir() / branch

        if not branch_path.exists():
            msg = f'Branch "{branch}" does not exist.'
            raise RepositoryError(msg)
        if len(self.branches()) == 1:
            msg = f'Cannot delete the last branch "{branch}".'
            raise RepositoryError(msg)

        branch_path.unlink()

    @requires_repo
    def branch_exists(self, branch_ref: Ref | str) -> bool:
        """Check if a branch exists in the repository.

        :param branch_ref: The name of the branch to check.
        :return: True if the branch exists, False otherwise.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        return bool(branch_ref) and (self.heads_dir() / branch_ref).is_file()

    @requires_repo
    def branches(self) -> list[str]:
        """Get a list of all branch names in the repository.

        :return: A list of branch names.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        heads_dir = self.heads_dir()
        return sorted(x.relative_to(heads_dir).as_posix() for x in heads_dir.rglob('*') if x.is_file())

    @requires_repo
    def delete_repo(self) -> None:
        """Delete the entire repository, including all objects and refs.

        :raises RepositoryNotFoundError: If the repository does not exist."""
        shutil.rmtree(self.repo_path())

    # Objects

    @requires_repo
    def read_commit(self, commit_ref: str) -> Commit:
        """Load a commit object.

        :raises RepositoryError: If the commit does not exist or cannot be parsed."""
        try:
            return load_commit(self.objects_dir(), commit_ref)
        except (OSError, ValueError) as e:
            msg = f'Error loading commit {commit_ref}'
            raise RepositoryError(msg) from e

    @requires_repo
    def read_tree(self, tree_ref: str) -> Tree:
        try:
            return load_tree(self.objects_dir(), tree_ref)
        except (OSError, ValueError) as e:
            msg = f'Error loading tree {tree_ref}'
            raise RepositoryError(msg) from e

    @requires_repo
    def read_blob(self, blob_ref: str) -> bytes:
        try:
            return load_blob(self.objects_dir(), blob_ref)
        except (OSError, ValueError) as e:
            msg = f'Error reading blob {blob_ref}'
            raise RepositoryError(msg) from e

    @requires_repo
    def write_blob(self, content: bytes | str) -> HashRef:
        return HashRef(save_blob(self.objects_dir(), to_bytes(content)).hash)

    @requires_repo
    def write_tree(self, entries: dict[str, str]) -> HashRef:
        """Store a flat path -> blob id mapping as a hierarchy of tree objects.

        Directories are written deepest first so that every subtree id is known before its parent is saved.

        :param entries: The blob id of every file, keyed by its ``/``-separated path.
        :return: The id of the root tree."""
        directories: dict[str, dict[str, TreeRecord]] = {'': {}}
        for path, blob_hash in entries.items():
            parts = path.split('/')
            for depth in range(1, len(parts)):
                directories.setdefault('/'.join(parts[:depth]), {})
            directories['/'.join(parts[:-1])][parts[-1]] = TreeRecord(TreeRecordType.BLOB, blob_hash, parts[-1])

        for dir_path in sorted(directories, key=lambda p: p.count('/') if p else -1, reverse=True):
            if not dir_path:
                continue
            tree_hash = save_tree(self.objects_dir(), Tree(directories[dir_path]))
            parent, _, name = dir_path.rpartition('/')
            directories[parent][name] = TreeRecord(TreeRecordType.TREE, tree_hash, name)

        return save_tree(self.objects_dir(), Tree(directories['']))

    @requires_repo
    def blob_index(self, commit_ref: str | None) -> dict[str, HashRef]:
        """Flatten the tree of a commit into a mapping of file paths to blob ids.

        The tree is walked with an explicit stack of (tree id, path prefix) pairs.

        :param commit_ref: The commit to index. None stands for an empty tree.
        :return: The blob id of every file in the commit, keyed by its ``/``-separated path.
        :raises RepositoryError: If a commit or tree cannot be loaded."""
        index: dict[str, HashRef] = {}
        if not commit_ref:
            return index

        stack = [(self.read_commit(commit_ref).tree_hash, '')]
        while stack:
            tree_hash, prefix = stack.pop()
            for name, record in self.read_tree(tree_hash).records.items():
                path = f'{prefix}/{name}' if prefix else name
                if record.type == TreeRecordType.TREE:
                    stack.append((record.hash, path))
                else:
                    index[path] = HashRef(record.hash)

        return index

    # History

    @requires_repo
    def log(self, tip: Ref | str | None = None) -> Generator[LogEntry, None, None]:
        """Generate a log of commits following first parents, starting from the specified tip.

        :param tip: The reference to the commit to start from. If None, defaults to the current HEAD.
        :return: A generator yielding LogEntry objects representing the commits in the log.
        :raises RepositoryError: If a commit cannot be loaded.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        tip = tip or self.head_ref()
        current_hash = self.resolve_ref(tip)

        while current_hash:
            commit = self.read_commit(current_hash)
            yield LogEntry(HashRef(current_hash), commit)

            current_hash = HashRef(commit.parent) if commit.parent else None

    @requires_repo
    def iter_ancestors(self, commit_refs: Iterable[str]) -> Generator[HashRef, None, None]:
        """Yield the given commits and all of their ancestors once each, breadth first."""
        queue = deque(commit_refs)
        visited: set[str] = set()

        while queue:
            commit_hash = queue.popleft()
            if not commit_hash or commit_hash in visited:
                continue
            visited.add(commit_hash)
            yield HashRef(commit_hash)

            queue.extend(self.read_commit(commit_hash).parents)

    @requires_repo
    def merge_base(self, commit_ref1: Ref | str | None = None,
                   commit_ref2: Ref | str | None = None) -> HashRef | None:
        """Find the nearest common ancestor of two commits, if one exists."""
        if commit_ref1 is None:
            commit_ref1 = self.head_ref()
        if commit_ref2 is None:
            commit_ref2 = self.head_ref()

        try:
            commit_hash1 = self.resolve_ref(commit_ref1)
            commit_hash2 = self.resolve_ref(commit_ref2)

            if commit_hash1 is None:
                msg = f'Cannot resolve reference {commit_ref1}'
                raise RefError(msg)
            if commit_hash2 is None:
                msg = f'Cannot resolve reference {commit_ref2}'
                raise RefError(msg)
        except RefError as e:
            msg = 'Error resolving commit references'
            raise RepositoryError(msg) from e

        ancestors = set(self.iter_ancestors([commit_hash1]))
        for commit_hash in self.iter_ancestors([commit_hash2]):
            if commit_hash in ancestors:
                return commit_hash

        return None

    @requires_repo
    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        return ancestor in self.iter_ancestors([descendant])

    # Index

    @requires_repo
    def index(self) -> dict[str, HashRef]:
        """Get the staged blob id of every tracked path."""
        index_file = self.index_file()
        if not index_file.exists():
            return {}

        try:
            entries = json.loads(index_file.read_text())
        except (OSError, ValueError) as e:
            msg = f'Error reading index {index_file}'
            raise RepositoryError(msg) from e

        return {path: HashRef(blob_hash) for path, blob_hash in entries.items()}

    def _write_index(self, entries: dict[str, str]) -> None:
        self.index_file().write_text(json.dumps(dict(sorted(entries.items())), indent=2))

    @requires_repo
    def stage(self, path: str) -> None:
        """Record the working tree version of a path in the index. A missing file stages its deletion."""
        entries = self.index()
        file = self.working_dir / path
        if file.is_file():
            entries[path] = HashRef(save_file_content(self.objects_dir(), file).hash)
        else:
            entries.pop(path, None)
        self._write_index(entries)

    @requires_repo
    def stage_all(self) -> None:
        """Stage every working tree file and every deletion of a tracked file."""
        entries = {path: HashRef(save_file_content(self.objects_dir(), self.working_dir / path).hash)
                   for path in self.working_tree()}
        self._write_index(entries)

    @requires_repo
    def unstage(self, path: str) -> None:
        """Reset the index entry of a path to its HEAD version."""
        entries = self.index()
        head_blob = self.blob_index(self.head_commit()).get(path)
        if head_blob is None:
            entries.pop(path, None)
        else:
            entries[path] = head_blob
        self._write_index(entries)

    @requires_repo
    def remove(self, path: str, cached: bool = False) -> None:
        """Delete a path from the index and, unless `cached` is set, from the working tree."""
        if not cached:
            self.delete_file(path)
        entries = self.index()
        if entries.pop(path, None) is not None:
            self._write_index(entries)

    # Working tree

    @requires_repo
    def read_file(self, path: str) -> bytes | None:
        file = self.working_dir / path
        return file.read_bytes() if file.is_file() else None

    @requires_repo
    def write_file(self, path: str, content: bytes | str | None) -> None:
        file = self.working_dir / path
        file.parent.mkdir(parents=True, exist_ok=True)
        file.write_bytes(to_bytes(content))

    @requires_repo
    def delete_file(self, path: str) -> None:
        """Delete a working tree file, pruning directories it leaves empty. A missing file is ignored."""
        file = self.working_dir / path
        file.unlink(missing_ok=True)

        parent = file.parent
        while parent != self.working_dir and parent.is_dir() and not any(parent.iterdir()):
            parent.rmdir()
            parent = parent.parent

    @requires_repo
    def working_tree(self) -> dict[str, HashRef]:
        """Get the blob id of every file in the working tree, keyed by path. Nothing is stored."""
        result: dict[str, HashRef] = {}
        stack = [self.working_dir]

        while stack:
            current_path = stack.pop()
            for item in current_path.iterdir():
                if item.name == self.repo_dir.name:
                    continue
                if item.is_dir():
                    stack.append(item)
                elif item.is_file():
                    result[item.relative_to(self.working_dir).as_posix()] = hash_string(item.read_bytes())

        return result

    @requires_repo
    def status(self, paths: Iterable[str] | None = None) -> list[StatusEntry]:
        """Compare HEAD, the index and the working tree.

        :param paths: Restrict the comparison to these paths. Defaults to every path known to any of the three.
        :return: One StatusEntry per path, sorted by path."""
        head = self.blob_index(self.head_commit())
        index = self.index()
        workdir = self.working_tree()

        if paths is None:
            paths = set(head) | set(index) | set(workdir)

        return [StatusEntry(path, head.get(path), index.get(path), workdir.get(path)) for path in sorted(set(paths))]

    @requires_repo
    def has_changes(self, include_untracked: bool = False) -> bool:
        """Check for staged or unstaged changes.

        :param include_untracked: Whether an untracked file counts as a change. Tracked files only by default.
        :return: True if HEAD, the index and the working tree differ."""
        return any((include_untracked or not entry.untracked) and (entry.staged or entry.unstaged)
                   for entry in self.status())

    # Commits and snapshots

    @requires_repo
    def commit(self, author: str, message: str, parents: list[str] | None = None) -> HashRef:
        """Commit the index to the repository.

        :param author: The name of the commit author.
        :param message: The commit message.
        :param parents: The parents of the new commit. Defaults to the current HEAD commit, if any.
        :return: A HashRef object representing the commit reference.
        :raises ValueError: If the author or message is empty.
        :raises RepositoryNotFoundError: If the repository does not exist."""
        if not author:
            msg = 'Author is required'
            raise ValueError(msg)
        if not message:
            msg = 'Commit message is required'
            raise ValueError(msg)

        if parents is None:
            head_commit = self.head_commit()
            parents = [head_commit] if head_commit else []

        tree_hash = self.write_tree(self.index())
        commit = Commit(tree_hash, author, message, int(datetime.now().timestamp()), list(parents))
        commit_ref = save_commit(self.objects_dir(), commit)

        self._move_head(commit_ref)
        logger.debug('Committed %s with parents %s', commit_ref, parents)

        return commit_ref

    @requires_repo
    def commit_working_dir(self, author: str, message: str) -> HashRef:
        """Stage every change in the working tree and commit it.

        :param author: The name of the commit author.
        :param message: The commit message.
        :return: A HashRef object representing the commit reference."""
        self.stage_all()
        return self.commit(author, message)

    @requires_repo
    def commit_object(self, tree_hash: str, author: str, message: str, parents: list[str]) -> HashRef:
        """Store a commit object without moving any ref."""
        commit = Commit(tree_hash, author, message, int(datetime.now().timestamp()), list(parents))
        return save_commit(self.objects_dir(), commit)

    @requires_repo
    def checkout(self, name: str) -> None:
        """Switch to a branch, or detach HEAD at the commit a commit-ish names.

        The index and the tracked files of the working tree are replaced by the target commit's tree;
        untracked files are left alone."""
        if self.branch_exists(name):
            new_head: Ref = branch_ref(name)
            target = self.resolve_ref(new_head)
        else:
            target = self.resolve_commitish(name)
            new_head = target

        self._restore(target)
        self.set_head(new_head)

    @requires_repo
    def reset_hard(self, commit_ref: str, extra_paths: Iterable[str] = ()) -> None:
        """Move HEAD (or the branch it points to) to a commit and make the index and working tree match it.

        :param commit_ref: The commit to reset to.
        :param extra_paths: Untracked paths to remove as well, e.g. files a conflicted operation created."""
        self._restore(HashRef(commit_ref), extra_paths)
        self._move_head(HashRef(commit_ref))

    def _move_head(self, commit_ref: HashRef) -> None:
        # See if HEAD is a symbolic reference to a branch that we need to update.
        # Otherwise HEAD is detached and is moved itself.
        head_ref = self.head_ref()
        if isinstance(head_ref, SymRef):
            write_ref(self.refs_dir() / head_ref, commit_ref)
        else:
            self.set_head(commit_ref)

    def _restore(self, commit_ref: HashRef | None, extra_paths: Iterable[str] = ()) -> None:
        target = self.blob_index(commit_ref)
        tracked = set(self.blob_index(self.head_commit())) | set(self.index()) | set(extra_paths)

        for path in tracked - set(target):
            self.delete_file(path)
        for path, blob_hash in target.items():
            self.write_file(path, self.read_blob(blob_hash))

        self._write_index(target)


def branch_ref(branch: str) -> SymRef:
    """Create a symbolic reference for a branch name.

    :param branch: The name of the branch.
    :return: A SymRef object representing the branch reference."""
    return SymRef(f'{HEADS_DIR}/{branch}')
