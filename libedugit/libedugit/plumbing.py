"""Low-level object storage: content addressing and (de)serialization of objects."""

import hashlib
from pathlib import Path

from . import Blob, Commit, Tree, TreeRecord, TreeRecordType
from .ref import HashRef

BLOB_TYPE = 'blob'
TREE_TYPE = 'tree'
COMMIT_TYPE = 'commit'


def _envelope(type_: str, payload: bytes) -> bytes:
    return f'{type_} {len(payload)}'.encode() + b'\x00' + payload


def hash_payload(type_: str, payload: bytes) -> HashRef:
    """Compute the id an object of the given type and payload is stored under."""
    return HashRef(hashlib.sha1(_envelope(type_, payload)).hexdigest())  # noqa: S324


def hash_string(content: str | bytes) -> HashRef:
    """Compute the blob id of the given content. Text is encoded as UTF-8."""
    if isinstance(content, str):
        content = content.encode('utf-8')
    return hash_payload(BLOB_TYPE, content)


def get_content_path(objects_dir: str | Path, object_hash: str) -> Path:
    """Get the path an object is stored at: ``objects/ab/abcdef...``."""
    return Path(objects_dir) / object_hash[:2] / object_hash


def save_object(objects_dir: str | Path, type_: str, payload: bytes) -> HashRef:
    """Store an object and return its id. Storing an existing object is a no-op."""
    object_hash = hash_payload(type_, payload)
    path = get_content_path(objects_dir, object_hash)
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(_envelope(type_, payload))

    return object_hash


def load_object(objects_dir: str | Path, object_hash: str, expected_type: str | None = None) -> tuple[str, bytes]:
    """Load an object's type and payload.

    :raises FileNotFoundError: If no object with this id exists.
    :raises ValueError: If the object is corrupt or not of the expected type."""
    raw = get_content_path(objects_dir, object_hash).read_bytes()

    header, sep, payload = raw.partition(b'\x00')
    if not sep:
        msg = f'Corrupt object {object_hash}: missing header'
        raise ValueError(msg)

    try:
        type_, size = header.decode('ascii').split(' ')
    except ValueError as e:
        msg = f'Corrupt object {object_hash}: invalid header'
        raise ValueError(msg) from e

    if int(size) != len(payload):
        msg = f'Corrupt object {object_hash}: size mismatch'
        raise ValueError(msg)
    if expected_type is not None and type_ != expected_type:
        msg = f'Object {object_hash} is a {type_}, expected {expected_type}'
        raise ValueError(msg)

    return type_, payload


def save_blob(objects_dir: str | Path, content: bytes) -> Blob:
    return Blob(save_object(objects_dir, BLOB_TYPE, content))


def load_blob(objects_dir: str | Path, blob_hash: str) -> bytes:
    return load_object(objects_dir, blob_hash, BLOB_TYPE)[1]


def save_file_content(objects_dir: str | Path, file: Path) -> Blob:
    """Store the content of a file as a blob.

    :raises ValueError: If the file does not exist."""
    if not file.is_file():
        msg = f'File {file} does not exist'
        raise ValueError(msg)

    return save_blob(objects_dir, file.read_bytes())


def _serialize_tree(tree: Tree) -> bytes:
    return ''.join(f'{record.type.value} {record.hash} {name}\n'
                   for name, record in sorted(tree.records.items())).encode('utf-8')


def _serialize_commit(commit: Commit) -> bytes:
    lines = [f'tree {commit.tree_hash}']
    lines.extend(f'parent {parent}' for parent in commit.parents)
    lines.append(f'author {commit.author}')
    lines.append(f'timestamp {commit.timestamp}')

    return ('\n'.join(lines) + '\n\n' + commit.message).encode('utf-8')


def hash_object(obj: Blob | Tree | Commit) -> HashRef:
    """Compute the id of an object without storing it."""
    match obj:
        case Blob():
            return HashRef(obj.hash)
        case Tree():
            return hash_payload(TREE_TYPE, _serialize_tree(obj))
        case Commit():
            return hash_payload(COMMIT_TYPE, _serialize_commit(obj))
        case _:
            msg = f'Cannot hash object of type {type(obj)}'
            raise TypeError(msg)


def save_tree(objects_dir: str | Path, tree: Tree) -> HashRef:
    return save_object(objects_dir, TREE_TYPE, _serialize_tree(tree))


def load_tree(objects_dir: str | Path, tree_hash: str) -> Tree:
    payload = load_object(objects_dir, tree_hash, TREE_TYPE)[1]

    records: dict[str, TreeRecord] = {}
    for line in payload.decode('utf-8').split('\n')[:-1]:
        type_, record_hash, name = line.split(' ', 2)
        records[name] = TreeRecord(TreeRecordType(type_), record_hash, name)

    return Tree(records)


def save_commit(objects_dir: str | Path, commit: Commit) -> HashRef:
    return save_object(objects_dir, COMMIT_TYPE, _serialize_commit(commit))


def load_commit(objects_dir: str | Path, commit_hash: str) -> Commit:
    payload = load_object(objects_dir, commit_hash, COMMIT_TYPE)[1].decode('utf-8')
    header, _, message = payload.partition('\n\n')

    tree_hash = None
    author = ''
    timestamp = 0
    parents: list[str] = []
    for line in header.split('\n'):
        key, _, value = line.partition(' ')
        match key:
            case 'tree':
                tree_hash = value
            case 'parent':
                parents.append(value)
            case 'author':
                author = value
            case 'timestamp':
                timestamp = int(value)
            case _:
                msg = f'Corrupt commit {commit_hash}: unknown field {key}'
                raise ValueError(msg)

    if tree_hash is None:
        msg = f'Corrupt commit {commit_hash}: missing tree'
        raise ValueError(msg)

    return Commit(tree_hash, author, message, timestamp, parents)
