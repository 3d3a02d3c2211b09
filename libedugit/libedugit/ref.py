"""References: object ids and symbolic names, and their on-disk representation."""

from pathlib import Path
from typing import TypeAlias

SYMREF_PREFIX = 'ref:'


class RefError(Exception):
    """Exception raised for reference-related errors."""


class HashRef(str):
    """A reference that is a concrete object id."""

    __slots__ = ()


class SymRef(str):
    """A symbolic reference naming another ref, e.g. ``heads/main``."""

    __slots__ = ()


Ref: TypeAlias = HashRef | SymRef


def read_ref(ref_file: Path) -> Ref | None:
    """Read a reference from a ref file.

    :param ref_file: The file holding the reference.
    :return: A SymRef for ``ref: <name>`` content, a HashRef for a bare id, or None for an unborn (empty) ref.
    :raises RefError: If the file cannot be read."""
    try:
        content = ref_file.read_text().strip()
    except OSError as e:
        msg = f'Error reading ref file {ref_file}'
        raise RefError(msg) from e

    if not content:
        return None
    if content.startswith(SYMREF_PREFIX):
        return SymRef(content[len(SYMREF_PREFIX):].strip())

    return HashRef(content)


def write_ref(ref_file: Path, ref: Ref) -> None:
    """Write a reference to a ref file, creating parent directories as needed.

    :param ref_file: The file to write.
    :param ref: The reference to store.
    :raises RefError: If the reference type is not supported."""
    match ref:
        case SymRef():
            content = f'{SYMREF_PREFIX} {ref}'
        case HashRef():
            content = str(ref)
        case _:
            msg = f'Invalid reference type: {type(ref)}'
            raise RefError(msg)

    ref_file.parent.mkdir(parents=True, exist_ok=True)
    ref_file.write_text(f'{content}\n')
