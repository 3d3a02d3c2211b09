"""libedugit object model: the immutable records stored in the object database."""

from dataclasses import dataclass, field
from enum import Enum


class TreeRecordType(Enum):
    """The kind of object a tree record points to."""

    TREE = 'tree'
    BLOB = 'blob'


@dataclass(frozen=True)
class Blob:
    """A stored file content, identified by its hash."""

    hash: str


@dataclass(frozen=True)
class TreeRecord:
    """A single entry of a tree: a named pointer to a blob or a subtree."""

    type: TreeRecordType
    hash: str
    name: str


@dataclass(frozen=True)
class Tree:
    """One directory level, mapping entry names to their records."""

    records: dict[str, TreeRecord] = field(default_factory=dict)


@dataclass(frozen=True)
class Commit:
    """A snapshot of the repository tree together with its history links.

    The order of ``parents`` is significant: index 0 is the first ("mainline") parent."""

    tree_hash: str
    author: str
    message: str
    timestamp: int
    parents: list[str] = field(default_factory=list)

    @property
    def parent(self) -> str | None:
        """The first parent of the commit, or None for a root commit."""
        return self.parents[0] if self.parents else None


__all__ = ['Blob', 'Commit', 'Tree', 'TreeRecord', 'TreeRecordType']
