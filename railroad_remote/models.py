"""Data types shared by the codec, session and controller."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Train:
    """A locomotive known to the controller. Identity is the object id."""

    id: int
    name: str


@dataclass(frozen=True)
class TrainFunction:
    """A function slot (light, horn, ...) of the selected train."""

    id: int
    value: bool


class Direction(Enum):
    """Travel direction, valued with its wire encoding."""

    FORWARD = 0
    REVERSE = 1


class UpdatePolicy(Enum):
    """When local control state follows a user intent.

    OPTIMISTIC applies the change before the controller confirms it.
    CONFIRMED waits for a successful reply first.
    """

    OPTIMISTIC = "optimistic"
    CONFIRMED = "confirmed"
