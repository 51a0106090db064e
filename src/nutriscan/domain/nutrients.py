"""Nutrient profile and health condition models."""

import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from nutriscan.domain.errors import ValidationError


class HealthCondition(str, Enum):
    """Physiological context that selects which thresholds apply."""

    NORMAL = "normal"
    DIABETIC = "diabetic"
    HYPERTENSIVE = "hypertensive"
    WEIGHT_LOSS = "weight_loss"
    PREGNANT_NURSING = "pregnant_nursing"
    CHOLESTEROL_WATCH = "cholesterol_watch"


class FlagLevel(str, Enum):
    """Severity of a health flag."""

    GOOD = "good"
    CAUTION = "caution"
    CRITICAL = "critical"

    @property
    def severity(self) -> int:
        """Numeric rank where a larger value is more severe."""
        return _SEVERITY[self]


_SEVERITY = {FlagLevel.GOOD: 0, FlagLevel.CAUTION: 1, FlagLevel.CRITICAL: 2}


@dataclass(frozen=True)
class HealthFlag:
    """Single rule outcome with a severity and a message."""

    level: FlagLevel
    message: str


class NutrientProfile(Mapping[str, float]):
    """Read-only mapping of nutrient name to a non-negative amount.

    Missing nutrients read as zero through ``amount``; plain mapping access
    keeps the usual ``KeyError`` semantics.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, object] | None = None) -> None:
        cleaned: dict[str, float] = {}
        for name, raw in (values or {}).items():
            cleaned[_validate_name(name)] = _validate_amount(name, raw)
        self._values = MappingProxyType(cleaned)

    def amount(self, name: str) -> float:
        """Return the amount for a nutrient, treating absent keys as zero."""
        return self._values.get(name, 0.0)

    def to_dict(self) -> dict[str, float]:
        """Return a plain dict copy suitable for serialization."""
        return dict(self._values)

    def __getitem__(self, name: str) -> float:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, NutrientProfile):
            return dict(self._values) == dict(other._values)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._values.items()))

    def __repr__(self) -> str:
        return f"NutrientProfile({dict(self._values)!r})"


def _validate_name(name: object) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(f"Invalid nutrient name: {name!r}")
    return name.strip()


def _validate_amount(name: object, raw: object) -> float:
    # bool is an int subclass but never a meaningful amount
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValidationError(f"Nutrient {name!r} must be numeric, got {raw!r}")
    try:
        value = float(raw)
    except OverflowError as exc:
        raise ValidationError(f"Nutrient {name!r} must be finite, got {raw!r}") from exc
    if math.isnan(value) or math.isinf(value):
        raise ValidationError(f"Nutrient {name!r} must be finite, got {raw!r}")
    if value < 0:
        raise ValidationError(f"Nutrient {name!r} must be non-negative, got {raw!r}")
    return value
