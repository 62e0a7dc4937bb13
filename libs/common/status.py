"""Status transition guard shared by every stateful entity.

Each status enum declares its allowed moves as a mapping of
``current -> frozenset(targets)``; terminal states map to an empty set.
"""

import enum
from typing import Mapping, TypeVar

from libs.common.errors import InvalidStatusTransition

S = TypeVar("S", bound=enum.Enum)


def can_transition(
    transitions: Mapping[S, frozenset], current: S, target: S
) -> bool:
    return target in transitions.get(current, frozenset())


def ensure_transition(
    entity: str, transitions: Mapping[S, frozenset], current: S, target: S
) -> S:
    """Return ``target`` if the move is allowed, else raise InvalidStatusTransition."""
    if not can_transition(transitions, current, target):
        raise InvalidStatusTransition(entity, current.value, target.value)
    return target
