"""Identifiers Module - Hierarchical check ids and version-aware ordering."""

import re
from typing import Iterable, List, Tuple, TypeVar

from .exceptions import InvalidIdentifierError

T = TypeVar("T")

_COMPONENT_PATTERN = re.compile(r"^(\d*)(.*)$")


def parse_id(identifier: str) -> Tuple[str, ...]:
    """Split a dotted identifier into its components.

    Args:
        identifier: Identifier such as "1.1.10"

    Returns:
        Tuple of components, e.g. ("1", "1", "10")

    Raises:
        InvalidIdentifierError: If the id is empty or has an empty component
    """
    if not identifier or not identifier.strip():
        raise InvalidIdentifierError("Identifier must not be empty")

    components = tuple(identifier.strip().split("."))
    if any(not c for c in components):
        raise InvalidIdentifierError(f"Malformed identifier: {identifier!r}")
    return components


def id_sort_key(identifier: str) -> Tuple[Tuple[int, int, str], ...]:
    """Build a sort key that orders components numerically.

    "1.1.10" sorts after "1.1.9", and a parent sorts before its children.
    Components that do not start with a digit sort after numeric ones.
    """
    key = []
    for component in identifier.split("."):
        digits, rest = _COMPONENT_PATTERN.match(component).groups()
        if digits:
            key.append((0, int(digits), rest))
        else:
            key.append((1, 0, component))
    return tuple(key)


def is_descendant(identifier: str, ancestor: str) -> bool:
    """Check whether identifier sits strictly below ancestor in the hierarchy."""
    return identifier.startswith(ancestor + ".")


def is_ancestor(identifier: str, descendant: str) -> bool:
    """Check whether identifier sits strictly above descendant in the hierarchy."""
    return descendant.startswith(identifier + ".")


def is_related(identifier: str, other: str) -> bool:
    """Exact match, ancestor or descendant."""
    return (
        identifier == other
        or is_ancestor(identifier, other)
        or is_descendant(identifier, other)
    )


def split_id_list(text: str) -> List[str]:
    """Split a user supplied list of ids on whitespace and commas.

    Args:
        text: Value such as "1.1 1.3.2" or "4.1,5"

    Returns:
        Validated identifiers in the order given
    """
    ids = []
    for token in re.split(r"[\s,]+", text or ""):
        if token:
            parse_id(token)
            ids.append(token)
    return ids


def sort_ids(identifiers: Iterable[str]) -> List[str]:
    """Sort identifiers in version-aware order."""
    return sorted(identifiers, key=id_sort_key)


def sort_by_id(items: Iterable[T]) -> List[T]:
    """Sort any objects carrying an ``id`` attribute in version-aware order."""
    return sorted(items, key=lambda item: id_sort_key(item.id))
