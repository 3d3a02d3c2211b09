"""Markers of in-progress multi-step operations: merge, cherry-pick and rebase.

Each operation kind persists one JSON marker file in the sequencer directory.
At most one marker exists at a time: starting an operation while any other is in progress is refused.

Marker file layout (``MERGE_STATE.json``)::

    {
      "merge_head": "<id of the commit being merged>",
      "orig_head": "<HEAD before the merge>",
      "message": "Merge branch 'feature' into main",
      "conflicts": ["README.md"]
    }
"""

import json
import logging
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar, TypeAlias

from .constants import CHERRY_PICK_STATE_FILE, MERGE_STATE_FILE, REBASE_STATE_FILE

if TYPE_CHECKING:
    from .repository import Repository

logger = logging.getLogger(__name__)


class SequencerError(Exception):
    """Exception raised for errors reading or writing operation markers."""


class SequencerStateError(SequencerError):
    """Exception raised when an operation is started, continued or aborted in the wrong state."""


class UnresolvedConflictError(SequencerError):
    """Exception raised when an operation is continued while conflicted paths are still unresolved."""

    def __init__(self, paths: list[str]) -> None:
        super().__init__('Fix conflicts and stage the result first.')
        self.paths = paths


class OperationKind(Enum):
    MERGE = 'merge'
    CHERRY_PICK = 'cherry-pick'
    REBASE = 'rebase'


@dataclass
class MergeState:
    merge_head: str
    orig_head: str
    message: str
    conflicts: list[str] = field(default_factory=list)

    kind: ClassVar[OperationKind] = OperationKind.MERGE


@dataclass
class CherryPickState:
    """A cherry-pick stopped on a conflict.

    ``todo`` holds the commits still to be picked after ``cherry_pick_head``, oldest first."""

    cherry_pick_head: str
    orig_head: str
    message: str
    todo: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)

    kind: ClassVar[OperationKind] = OperationKind.CHERRY_PICK


@dataclass
class RebaseState:
    """A rebase of ``branch`` onto ``upstream``.

    ``current`` is the commit being replayed, ``todo`` the commits still to be replayed after it, oldest first."""

    branch: str
    orig_head: str
    upstream: str
    todo: list[str] = field(default_factory=list)
    current: str | None = None
    conflicts: list[str] = field(default_factory=list)

    kind: ClassVar[OperationKind] = OperationKind.REBASE


OperationState: TypeAlias = MergeState | CherryPickState | RebaseState

_STATE_FILES = {
    OperationKind.MERGE: MERGE_STATE_FILE,
    OperationKind.CHERRY_PICK: CHERRY_PICK_STATE_FILE,
    OperationKind.REBASE: REBASE_STATE_FILE,
}

_STATE_TYPES: dict[OperationKind, type[OperationState]] = {
    OperationKind.MERGE: MergeState,
    OperationKind.CHERRY_PICK: CherryPickState,
    OperationKind.REBASE: RebaseState,
}

_IN_PROGRESS_MESSAGES = {
    OperationKind.MERGE: 'You have not concluded your merge (MERGE_HEAD exists).',
    OperationKind.CHERRY_PICK: 'A cherry-pick is already in progress.',
    OperationKind.REBASE: 'A rebase is already in progress.',
}

_MISSING_MESSAGES = {
    OperationKind.MERGE: 'There is no merge in progress (MERGE_HEAD missing).',
    OperationKind.CHERRY_PICK: 'There is no cherry-pick in progress.',
    OperationKind.REBASE: 'No rebase in progress.',
}


class Sequencer:
    """The single owner of the operation markers of one repository."""

    def __init__(self, path: Path) -> None:
        """Create a sequencer storing its markers in the given directory. Nothing is created until a marker is written.

        :param path: The sequencer directory."""
        self.path = path

    def state_file(self, kind: OperationKind) -> Path:
        return self.path / _STATE_FILES[kind]

    def is_in_merge(self) -> bool:
        return self.state_file(OperationKind.MERGE).exists()

    def is_in_cherry_pick(self) -> bool:
        return self.state_file(OperationKind.CHERRY_PICK).exists()

    def is_in_rebase(self) -> bool:
        return self.state_file(OperationKind.REBASE).exists()

    def active(self) -> OperationKind | None:
        """Get the kind of the operation in progress, if any."""
        for kind in OperationKind:
            if self.state_file(kind).exists():
                return kind
        return None

    def ensure_idle(self) -> None:
        """Check that no operation is in progress.

        :raises SequencerStateError: If any operation is in progress."""
        active = self.active()
        if active is not None:
            raise SequencerStateError(_IN_PROGRESS_MESSAGES[active])

    def begin(self, state: OperationState) -> None:
        """Record the start of an operation.

        :param state: The marker of the operation.
        :raises SequencerStateError: If any operation is already in progress."""
        self.ensure_idle()

        self._write(state)
        logger.info('Started %s at %s', state.kind.value, state.orig_head)

    def load(self, kind: OperationKind) -> OperationState:
        """Load the marker of the operation in progress.

        :param kind: The kind of operation expected to be in progress.
        :return: The persisted marker.
        :raises SequencerStateError: If no operation of this kind is in progress.
        :raises SequencerError: If the marker cannot be read."""
        state_file = self.state_file(kind)
        if not state_file.exists():
            raise SequencerStateError(_MISSING_MESSAGES[kind])

        try:
            data = json.loads(state_file.read_text())
            return _STATE_TYPES[kind](**data)
        except (OSError, ValueError, TypeError) as e:
            msg = f'Error reading {kind.value} state {state_file}'
            raise SequencerError(msg) from e

    def update(self, state: OperationState) -> None:
        """Rewrite the marker of the operation in progress, e.g. after its queue advanced.

        :raises SequencerStateError: If no operation of this kind is in progress."""
        if not self.state_file(state.kind).exists():
            raise SequencerStateError(_MISSING_MESSAGES[state.kind])

        self._write(state)
        logger.debug('Updated %s state', state.kind.value)

    def finish(self, state: OperationState) -> bool:
        """Clear the marker of an operation, provided it still describes the same operation.

        :param state: The marker the caller started from.
        :return: True if the marker was cleared, False if it was missing or belongs to another operation."""
        state_file = self.state_file(state.kind)
        if not state_file.exists():
            return False

        persisted = self.load(state.kind)
        if persisted.orig_head != state.orig_head:
            logger.warning('Not clearing %s state: it was started at %s, not %s',
                           state.kind.value, persisted.orig_head, state.orig_head)
            return False

        state_file.unlink()
        logger.info('Finished %s', state.kind.value)
        return True

    def _write(self, state: OperationState) -> None:
        self.path.mkdir(parents=True, exist_ok=True)
        self.state_file(state.kind).write_text(json.dumps(asdict(state), indent=2))


def ensure_resolved(repo: 'Repository', paths: Iterable[str]) -> None:
    """Check that every previously conflicted path has been resolved and staged.

    A path is resolved once its index and working tree versions agree.

    :param repo: The repository the operation runs in.
    :param paths: The paths recorded as conflicted.
    :raises UnresolvedConflictError: If any path still differs between the index and the working tree."""
    paths = list(paths)
    if not paths:
        return

    unresolved = [entry.path for entry in repo.status(paths) if entry.index != entry.workdir]
    if unresolved:
        logger.debug('Unresolved paths: %s', unresolved)
        raise UnresolvedConflictError(unresolved)
