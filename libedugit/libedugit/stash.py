"""Persistence of stash entries."""

import json
import logging
import re
from dataclasses import asdict, dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_STASH_REF_PATTERN = re.compile(r'^stash@\{(\d+)\}$')


class StashError(Exception):
    """Exception raised for stash-related errors."""


@dataclass(frozen=True)
class StashEntry:
    """A saved working tree and index.

    ``commit`` is a commit whose tree is the working tree snapshot, with HEAD as its first parent
    and the index snapshot commit ``index`` as its second."""

    message: str
    commit: str
    index: str
    head: str
    timestamp: int


class StashStore:
    """An ordered list of stash entries, newest first, persisted as a JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> list[StashEntry]:
        """Load all stash entries.

        :return: The entries, newest first. A missing stash file is an empty stash.
        :raises StashError: If the stash file cannot be read or parsed."""
        if not self.path.exists():
            return []

        try:
            return [StashEntry(**data) for data in json.loads(self.path.read_text())]
        except (OSError, ValueError, TypeError) as e:
            msg = f'Error reading stash {self.path}'
            raise StashError(msg) from e

    def save(self, entries: list[StashEntry]) -> None:
        """Replace the persisted stash entries.

        :param entries: The entries to store, newest first."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps([asdict(entry) for entry in entries], indent=2))
        logger.debug('Saved %d stash entries', len(entries))


def stash_ref(position: int) -> str:
    return f'stash@{{{position}}}'


def parse_stash_ref(ref: str | None, entries: list[StashEntry]) -> int:
    """Get the position of the entry a ``stash@{n}`` reference names.

    :param ref: The reference. None names the newest entry.
    :param entries: The current stash entries.
    :return: The position of the entry in ``entries``.
    :raises StashError: If the stash is empty or the reference is malformed or out of range."""
    if not entries:
        msg = 'No stash entries found.'
        raise StashError(msg)
    if ref is None:
        return 0

    match = _STASH_REF_PATTERN.match(ref.strip())
    if not match or int(match.group(1)) >= len(entries):
        msg = f'{ref} is not a valid reference'
        raise StashError(msg)

    return int(match.group(1))
