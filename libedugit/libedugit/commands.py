"""Command handlers for commit, merge, cherry-pick, rebase and stash.

Every handler returns the lines a terminal would print. Errors are reported as ``fatal: <message>`` lines."""

import logging
from collections.abc import Callable
from datetime import datetime
from functools import wraps
from typing import ParamSpec

from .constants import DEFAULT_AUTHOR, SHORT_HASH_LENGTH, STASH_HEAD_LABEL, STASH_TARGET_LABEL
from .ref import RefError
from .replay import ApplyResult, apply_commit_changes
from .repository import Repository, RepositoryError, branch_ref
from .sequencer import (CherryPickState, MergeState, OperationKind, RebaseState, SequencerError,
                        SequencerStateError, ensure_resolved)
from .stash import StashEntry, StashError, parse_stash_ref, stash_ref

logger = logging.getLogger(__name__)

MERGE_CONFLICT_MESSAGE = 'Automatic merge failed; fix conflicts and commit the result.'
CHERRY_PICK_CONFLICT_MESSAGE = 'Automatic cherry-pick failed; fix conflicts and run "git cherry-pick --continue".'
REBASE_CONFLICT_MESSAGE = 'Automatic rebase failed; fix conflicts and run "git rebase --continue".'


class CommandError(Exception):
    """Exception raised when a command is refused before it changes anything."""


P = ParamSpec('P')


def reports_errors(func: Callable[P, list[str]]) -> Callable[P, list[str]]:
    """Decorate a command handler to report library errors as ``fatal:`` output instead of raising them.

    :param func: The handler to decorate.
    :return: A wrapper returning the handler's output, or a single ``fatal:`` line."""

    @wraps(func)
    def _report(*args: P.args, **kwargs: P.kwargs) -> list[str]:
        try:
            return func(*args, **kwargs)
        except (CommandError, RepositoryError, RefError, SequencerError, StashError, ValueError) as e:
            logger.warning('%s failed: %s', func.__name__, e)
            return [f'fatal: {e}']

    return _report


def _short(oid: str) -> str:
    return oid[:SHORT_HASH_LENGTH]


def _subject(message: str) -> str:
    return message.split('\n', 1)[0]


def _commit_line(repo: Repository, commit_ref: str, message: str) -> str:
    return f'[{repo.current_branch() or "HEAD"} {_short(commit_ref)}] {_subject(message)}'


def _conflict_lines(paths: list[str]) -> list[str]:
    return [f'CONFLICT (content): {path}' for path in paths]


def _ensure_clean(repo: Repository, command: str) -> None:
    # Untracked files count as changes.
    if repo.has_changes(include_untracked=True):
        msg = f'{command} requires a clean working tree.'
        raise CommandError(msg)


# commit

@reports_errors
def commit(repo: Repository, message: str | None = None, author: str = DEFAULT_AUTHOR) -> list[str]:
    """Commit the index.

    A merge in progress is concluded: its conflicts must be resolved, the merged commit becomes the second parent
    and the recorded merge message is used when no message is given.
    A stopped cherry-pick with nothing left to pick is concluded as well.
    A rebase, or a cherry-pick with commits still queued, has to be concluded with `--continue` instead."""
    sequencer = repo.sequencer()
    merge_state = sequencer.load(OperationKind.MERGE) if sequencer.is_in_merge() else None
    pick_state = sequencer.load(OperationKind.CHERRY_PICK) if sequencer.is_in_cherry_pick() else None

    if sequencer.is_in_rebase():
        msg = 'A rebase is in progress; run "git rebase --continue" to commit the resolution.'
        raise CommandError(msg)
    if pick_state is not None and pick_state.todo:
        msg = 'A cherry-pick is in progress; run "git cherry-pick --continue" to commit the resolution.'
        raise CommandError(msg)

    parents = None
    if merge_state is not None:
        ensure_resolved(repo, merge_state.conflicts)
        message = message or merge_state.message
        parents = [repo.head_commit(), merge_state.merge_head]
    if pick_state is not None and not pick_state.todo:
        ensure_resolved(repo, pick_state.conflicts)
        message = message or pick_state.message

    if not message:
        msg = 'commit message required (use -m)'
        raise CommandError(msg)

    commit_ref = repo.commit(author, message, parents)

    if merge_state is not None:
        sequencer.finish(merge_state)
    if pick_state is not None and not pick_state.todo:
        sequencer.finish(pick_state)

    return [_commit_line(repo, commit_ref, message)]


# merge

@reports_errors
def merge(repo: Repository, name: str, author: str = DEFAULT_AUTHOR) -> list[str]:
    """Merge the commit a commit-ish names into the current branch.

    Fast-forwards when possible, creates a two-parent merge commit when the merge is clean,
    and otherwise leaves the conflicts in the working tree and records a merge in progress."""
    if not name:
        msg = 'merge requires a branch name'
        raise CommandError(msg)

    sequencer = repo.sequencer()
    sequencer.ensure_idle()

    try:
        their_ref = repo.resolve_commitish(name)
    except RefError as e:
        msg = f'merge: {name} - not something we can merge'
        raise CommandError(msg) from e

    head_ref = repo.head_commit()
    if head_ref is not None and repo.is_ancestor(their_ref, head_ref):
        return ['Already up to date.']

    _ensure_clean(repo, 'merge')

    if head_ref is None or repo.is_ancestor(head_ref, their_ref):
        repo.reset_hard(their_ref)
        logger.debug('Fast-forwarded to %s', their_ref)
        return [f'Updating {_short(head_ref or their_ref)}..{_short(their_ref)}', 'Fast-forward']

    base_ref = repo.merge_base(head_ref, their_ref)
    if base_ref is None:
        msg = 'refusing to merge unrelated histories'
        raise CommandError(msg)

    branch = repo.current_branch() or 'HEAD'
    message = f"Merge branch '{name}' into {branch}"
    result = apply_commit_changes(repo, their_ref, head_ref, base_oid=base_ref, target_label=name)

    if result.is_clean:
        repo.commit(author, message, [head_ref, their_ref])
        return [f'Merged {name} into {branch}']

    sequencer.begin(MergeState(their_ref, head_ref, message, result.conflicted_paths))
    return [MERGE_CONFLICT_MESSAGE, *_conflict_lines(result.conflicted_paths)]


@reports_errors
def merge_continue(repo: Repository, author: str = DEFAULT_AUTHOR) -> list[str]:
    sequencer = repo.sequencer()
    state = sequencer.load(OperationKind.MERGE)
    ensure_resolved(repo, state.conflicts)

    commit_ref = repo.commit(author, state.message, [repo.head_commit(), state.merge_head])
    sequencer.finish(state)

    return [_commit_line(repo, commit_ref, state.message)]


@reports_errors
def merge_abort(repo: Repository) -> list[str]:
    sequencer = repo.sequencer()
    if not sequencer.is_in_merge():
        msg = 'There is no merge to abort (MERGE_HEAD missing).'
        raise SequencerStateError(msg)

    state = sequencer.load(OperationKind.MERGE)
    repo.reset_hard(state.orig_head, extra_paths=state.conflicts)
    sequencer.finish(state)

    return ['Merge aborted.']


# cherry-pick

@reports_errors
def cherry_pick(repo: Repository, *commitishes: str, author: str = DEFAULT_AUTHOR) -> list[str]:
    """Apply the changes of one or more commits on top of HEAD, oldest argument first.

    Stops at the first conflicting commit, recording it and the commits still to be picked."""
    if not commitishes:
        msg = 'cherry-pick requires a commit'
        raise CommandError(msg)

    repo.sequencer().ensure_idle()
    _ensure_clean(repo, 'cherry-pick')

    queue: list[str] = []
    for commitish in commitishes:
        try:
            commit_ref = repo.resolve_commitish(commitish)
            repo.read_commit(commit_ref)
        except (RefError, RepositoryError) as e:
            msg = f"bad revision '{commitish}'"
            raise CommandError(msg) from e
        queue.append(commit_ref)

    return _pick(repo, queue, repo.head_commit(), author)


@reports_errors
def cherry_pick_continue(repo: Repository, author: str = DEFAULT_AUTHOR) -> list[str]:
    sequencer = repo.sequencer()
    state = sequencer.load(OperationKind.CHERRY_PICK)
    ensure_resolved(repo, state.conflicts)

    commit_ref = repo.commit(author, state.message)
    lines = [_commit_line(repo, commit_ref, state.message)]

    return lines + _pick(repo, state.todo, state.orig_head, author, state)


@reports_errors
def cherry_pick_abort(repo: Repository) -> list[str]:
    sequencer = repo.sequencer()
    state = sequencer.load(OperationKind.CHERRY_PICK)

    repo.reset_hard(state.orig_head, extra_paths=state.conflicts)
    sequencer.finish(state)

    return ['Cherry-pick aborted.']


def _pick(repo: Repository, queue: list[str], orig_head: str | None, author: str,
          state: CherryPickState | None = None) -> list[str]:
    sequencer = repo.sequencer()
    lines: list[str] = []

    for position, commit_ref in enumerate(queue):
        result = apply_commit_changes(repo, commit_ref, repo.head_commit())

        if not result.is_clean:
            stopped = CherryPickState(commit_ref, orig_head or '', result.message, list(queue[position + 1:]),
                                      result.conflicted_paths)
            if state is None:
                sequencer.begin(stopped)
            else:
                sequencer.update(stopped)
            return lines + [CHERRY_PICK_CONFLICT_MESSAGE, *_conflict_lines(result.conflicted_paths)]

        if not result.changed_paths:
            lines.append('Nothing to apply.')
            continue

        new_ref = repo.commit(author, result.message)
        lines.append(_commit_line(repo, new_ref, result.message))

    if state is not None:
        sequencer.finish(state)

    return lines


# rebase

@reports_errors
def rebase(repo: Repository, upstream: str, author: str = DEFAULT_AUTHOR) -> list[str]:
    """Replay the commits of the current branch that upstream lacks on top of upstream, oldest first."""
    if not upstream:
        msg = 'rebase requires a branch name'
        raise CommandError(msg)

    branch = repo.current_branch()
    if branch is None:
        msg = 'rebase requires a current branch'
        raise CommandError(msg)

    sequencer = repo.sequencer()
    sequencer.ensure_idle()
    _ensure_clean(repo, 'rebase')

    try:
        upstream_ref = repo.resolve_commitish(upstream)
    except RefError as e:
        msg = f"invalid upstream '{upstream}'"
        raise CommandError(msg) from e

    head_ref = repo.head_commit()
    if head_ref is None or repo.is_ancestor(upstream_ref, head_ref):
        return ['Current branch is up to date.']

    upstream_history = set(repo.iter_ancestors([upstream_ref]))
    unique = [entry.commit_ref for entry in repo.log(head_ref) if entry.commit_ref not in upstream_history]
    if not unique:
        return ['Current branch is up to date.']

    state = RebaseState(branch, head_ref, upstream_ref, list(reversed(unique)))
    sequencer.begin(state)
    repo.reset_hard(upstream_ref)
    logger.debug('Replaying %d commits of %s onto %s', len(state.todo), branch, upstream_ref)

    return [f'Rebasing {branch} onto {upstream}', *_replay(repo, state, author)]


@reports_errors
def rebase_continue(repo: Repository, author: str = DEFAULT_AUTHOR) -> list[str]:
    sequencer = repo.sequencer()
    state = sequencer.load(OperationKind.REBASE)
    ensure_resolved(repo, state.conflicts)

    lines: list[str] = []
    if state.current:
        message = repo.read_commit(state.current).message
        commit_ref = repo.commit(author, message)
        lines.append(_commit_line(repo, commit_ref, message))

        state.current = None
        state.conflicts = []
        sequencer.update(state)

    return lines + _replay(repo, state, author)


@reports_errors
def rebase_abort(repo: Repository) -> list[str]:
    sequencer = repo.sequencer()
    state = sequencer.load(OperationKind.REBASE)

    repo.set_head(branch_ref(state.branch))
    repo.reset_hard(state.orig_head, extra_paths=state.conflicts)
    sequencer.finish(state)

    return ['Rebase aborted.']


def _replay(repo: Repository, state: RebaseState, author: str) -> list[str]:
    sequencer = repo.sequencer()
    lines: list[str] = []

    while state.todo:
        commit_ref = state.todo.pop(0)
        result = apply_commit_changes(repo, commit_ref, repo.head_commit())

        if not result.is_clean:
            state.current = commit_ref
            state.conflicts = result.conflicted_paths
            sequencer.update(state)
            return lines + [REBASE_CONFLICT_MESSAGE, *_conflict_lines(result.conflicted_paths)]

        if result.changed_paths:
            new_ref = repo.commit(author, result.message)
            lines.append(_commit_line(repo, new_ref, result.message))
        sequencer.update(state)

    sequencer.finish(state)
    lines.append(f'Successfully rebased and updated {state.branch}.')
    return lines


# stash

@reports_errors
def stash_push(repo: Repository, message: str | None = None, author: str = DEFAULT_AUTHOR) -> list[str]:
    """Save the index and the working tree, untracked files included, and reset to HEAD."""
    head_ref = repo.head_commit()
    if head_ref is None:
        msg = 'You do not have the initial commit yet'
        raise CommandError(msg)

    status = repo.status()
    if not any(entry.staged or entry.unstaged for entry in status):
        return ['No local changes to save']

    branch = repo.current_branch() or 'HEAD'
    head_subject = f'{_short(head_ref)} {_subject(repo.read_commit(head_ref).message)}'
    message = f'On {branch}: {message}' if message else f'WIP on {branch}: {head_subject}'

    index_tree = repo.write_tree(repo.index())
    index_ref = repo.commit_object(index_tree, author, f'index on {branch}: {head_subject}', [head_ref])

    snapshot = {path: repo.write_blob(repo.read_file(path)) for path in repo.working_tree()}
    stash_commit = repo.commit_object(repo.write_tree(snapshot), author, message, [head_ref, index_ref])

    store = repo.stash_store()
    entries = store.load()
    entries.insert(0, StashEntry(message, stash_commit, index_ref, head_ref, int(datetime.now().timestamp())))
    store.save(entries)

    repo.reset_hard(head_ref, extra_paths=[entry.path for entry in status if entry.untracked])
    logger.info('Stashed %s as %s', message, stash_commit)

    return [f'Saved working directory and index state {message}']


@reports_errors
def stash_list(repo: Repository) -> list[str]:
    return [f'{stash_ref(position)}: {entry.message}' for position, entry in enumerate(repo.stash_store().load())]


@reports_errors
def stash_apply(repo: Repository, ref: str | None = None) -> list[str]:
    entries = repo.stash_store().load()
    position = parse_stash_ref(ref, entries)
    return _conflict_lines(_apply_stash(repo, entries[position]).conflicted_paths)


@reports_errors
def stash_pop(repo: Repository, ref: str | None = None) -> list[str]:
    """Apply a stash entry and drop it. A conflicting entry is kept."""
    store = repo.stash_store()
    entries = store.load()
    position = parse_stash_ref(ref, entries)
    entry = entries[position]

    result = _apply_stash(repo, entry)
    if not result.is_clean:
        return _conflict_lines(result.conflicted_paths) + ['The stash entry is kept in case you need it again.']

    del entries[position]
    store.save(entries)
    return [f'Dropped refs/{stash_ref(position)} ({entry.commit})']


@reports_errors
def stash_drop(repo: Repository, ref: str | None = None) -> list[str]:
    store = repo.stash_store()
    entries = store.load()
    position = parse_stash_ref(ref, entries)

    entry = entries.pop(position)
    store.save(entries)
    return [f'Dropped refs/{stash_ref(position)} ({entry.commit})']


@reports_errors
def stash_clear(repo: Repository) -> list[str]:
    repo.stash_store().save([])
    return []


def _apply_stash(repo: Repository, entry: StashEntry) -> ApplyResult:
    _ensure_clean(repo, 'stash apply')

    return apply_commit_changes(repo, entry.commit, repo.head_commit(), head_label=STASH_HEAD_LABEL,
                                target_label=STASH_TARGET_LABEL, stage_changes=False)


def stash(repo: Repository, action: str = 'push', *args: str) -> list[str]:
    """Dispatch a ``stash`` subcommand: push (the default, ``-m <message>``), list, apply, pop, drop or clear."""
    match action, args:
        case ('push', ('-m', message)) | ('-m', (message,)):
            return stash_push(repo, message)
        case ('push', ()):
            return stash_push(repo)
        case ('list', ()):
            return stash_list(repo)
        case ('apply', ()) | ('apply', (_,)):
            return stash_apply(repo, *args)
        case ('pop', ()) | ('pop', (_,)):
            return stash_pop(repo, *args)
        case ('drop', ()) | ('drop', (_,)):
            return stash_drop(repo, *args)
        case ('clear', ()):
            return stash_clear(repo)
        case _:
            return [f'fatal: unknown stash command: {" ".join([action, *args])}']

