"""Distribution targets and their fixed loudness/peak policies."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TypeVar


class MasteringTarget(str, Enum):
    """Named delivery contexts with a fixed loudness policy."""

    SPOTIFY = "spotify"
    BEATPORT = "beatport"


@dataclass(frozen=True, slots=True)
class Specifics:
    """Platform policy resolved from a :class:`MasteringTarget`."""

    target_loudness: float
    target_peak: float
    label: str
    context_text: str


_SPECIFICS: dict[MasteringTarget, Specifics] = {
    MasteringTarget.SPOTIFY: Specifics(
        target_loudness=-14.0,
        target_peak=-1.0,
        label="Spotify",
        context_text="Streaming distribution focused on translation and consistency.",
    ),
    MasteringTarget.BEATPORT: Specifics(
        target_loudness=-8.0,
        target_peak=-0.3,
        label="Beatport Top (Techno/Trance chart-competitive standard)",
        context_text="Club-oriented distribution focused on impact, clarity, and consistency.",
    ),
}


def resolve_specifics(target: MasteringTarget) -> Specifics:
    """Return the fixed policy for a distribution target."""

    return _SPECIFICS[target]


EnumT = TypeVar("EnumT", bound=Enum)


def enum_values(enum_cls: type[EnumT]) -> tuple[str, ...]:
    """Return enum values in declaration order."""

    return tuple(str(member.value) for member in enum_cls)


def parse_case_insensitive_enum(raw_value: str, enum_cls: type[EnumT]) -> EnumT:
    """Parse enum values case-insensitively and raise ValueError with allowed values."""

    normalized = raw_value.strip().lower()
    for member in enum_cls:
        if str(member.value).lower() == normalized:
            return member

    allowed = ", ".join(enum_values(enum_cls))
    enum_name = enum_cls.__name__
    raise ValueError(f"Invalid {enum_name}: '{raw_value}'. Allowed values: {allowed}.")


def resolve_target(raw_value: str) -> MasteringTarget:
    return parse_case_insensitive_enum(raw_value, MasteringTarget)
