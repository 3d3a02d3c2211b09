"""Resolution of commit-ish expressions such as ``HEAD~2``, ``main^2`` or ``a1b2c3d~1^2``."""

import logging
import re

from .constants import HEAD_REF
from .ref import HashRef, RefError
from .repository import Repository, RepositoryError

logger = logging.getLogger(__name__)

_BASE_PATTERN = re.compile(r'^([^~^]*)(.*)$', re.DOTALL)
_SUFFIX_PATTERN = re.compile(r'^([~^]\d*)+$')
_TOKEN_PATTERN = re.compile(r'([~^])(\d*)')


class InvalidRefError(RefError):
    """Exception raised when a commit-ish expression is malformed or cannot be resolved."""


def resolve_commitish(repo: Repository, expression: str) -> HashRef:
    """Resolve a commit-ish expression to a commit id.

    The expression is a base (``HEAD``, a branch or ref name, or a full or abbreviated id; empty means ``HEAD``)
    followed by any number of ``~N`` and ``^N`` suffixes, applied strictly left to right.
    ``~N`` walks N steps up the first-parent chain and ``^N`` selects the N-th parent of the current commit.
    An omitted N means 1. N=0 is rejected.

    :param repo: The repository to resolve against.
    :param expression: The commit-ish expression.
    :return: The id of the commit the expression names.
    :raises InvalidRefError: If the expression is malformed, its base does not name a commit,
        or a requested parent does not exist."""
    match = _BASE_PATTERN.match(expression.strip())
    base, suffix = match.group(1), match.group(2)

    if suffix and not _SUFFIX_PATTERN.match(suffix):
        msg = f'invalid ref: {expression}'
        raise InvalidRefError(msg)

    try:
        current = repo.resolve_ref(base or HEAD_REF)
    except RefError as e:
        msg = f'invalid ref: {expression}'
        raise InvalidRefError(msg) from e

    if current is None:
        msg = f'invalid ref: {expression}'
        raise InvalidRefError(msg)

    parents = _parents(repo, current, expression)
    for symbol, digits in _TOKEN_PATTERN.findall(suffix):
        count = int(digits) if digits else 1
        if count < 1:
            msg = f'invalid ref: {expression}'
            raise InvalidRefError(msg)

        if symbol == '~':
            for _ in range(count):
                if not parents:
                    msg = f'invalid ref: {expression}'
                    raise InvalidRefError(msg)
                current = HashRef(parents[0])
                parents = _parents(repo, current, expression)
        else:
            if len(parents) < count:
                msg = f'invalid ref: {expression}'
                raise InvalidRefError(msg)
            current = HashRef(parents[count - 1])
            parents = _parents(repo, current, expression)

    logger.debug('Resolved %s to %s', expression, current)
    return current


def _parents(repo: Repository, commit_ref: HashRef, expression: str) -> list[str]:
    try:
        return repo.read_commit(commit_ref).parents
    except RepositoryError as e:
        msg = f'invalid ref: {expression}'
        raise InvalidRefError(msg) from e
