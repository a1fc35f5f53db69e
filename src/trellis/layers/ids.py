"""Identifier generation for layers and variables."""

from __future__ import annotations

import collections.abc as _abc
import secrets as _secrets

import trellis.constants as constants


def create_id() -> str:
    """Generate a random 7 character alphanumeric id.

    Ids are drawn from a 62 character alphabet, which makes collisions
    unlikely but not impossible. Use ``create_unique_id`` when the set of
    existing ids is at hand.
    """
    return "".join(
        _secrets.choice(constants.ID_ALPHABET) for _ in range(constants.ID_LENGTH)
    )


def create_unique_id(taken: _abc.MutableSet[str]) -> str:
    """Generate an id not already in ``taken`` and add it to the set."""
    new_id = create_id()
    while new_id in taken:
        new_id = create_id()
    taken.add(new_id)
    return new_id
