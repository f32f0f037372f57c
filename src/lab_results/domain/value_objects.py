"""Immutable, self-validating value objects of the sample lifecycle."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Union
from uuid import UUID

from lab_results.domain.clock import AbstractClock
from lab_results.domain.exceptions import InvalidArgument

Number = Union[Decimal, int, float, str]

NIL_UUID = UUID(int=0)


def parse_uuid(value: Any, label: str) -> UUID:
    if isinstance(value, UUID):
        uuid_value = value
    elif value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidArgument(f"{label} cannot be empty.")
    else:
        try:
            uuid_value = UUID(str(value).strip())
        except ValueError as e:
            raise InvalidArgument(f"{label} is not a valid identifier: {value!r}") from e
    if uuid_value == NIL_UUID:
        raise InvalidArgument(f"{label} cannot be empty.")
    return uuid_value


def _to_decimal(value: Number, label: str) -> Decimal:
    if isinstance(value, bool):
        raise InvalidArgument(f"{label} must be a number, got {value!r}.")
    try:
        # str() first so 5.5 becomes Decimal("5.5"), not its binary expansion
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise InvalidArgument(f"{label} must be a number, got {value!r}.") from e
    if not result.is_finite():
        raise InvalidArgument(f"{label} must be finite, got {value!r}.")
    return result


@dataclass(frozen=True)
class PatientId:
    value: UUID

    def __post_init__(self):
        object.__setattr__(self, "value", parse_uuid(self.value, "PatientId"))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class DoctorId:
    value: UUID

    def __post_init__(self):
        object.__setattr__(self, "value", parse_uuid(self.value, "DoctorId"))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class SampleCode:
    """
    Human-readable lab ticket code, e.g. ``LAB-2026-482913``.

    Stored upper-cased so lookups and comparisons are case-insensitive.
    Generated codes carry only six random digits per year, so collisions
    are possible; the unique index on the samples table rejects a duplicate
    at insert time.
    """
    value: str

    PREFIX = "LAB"
    RANDOM_MIN = 100000
    RANDOM_MAX = 999999

    def __post_init__(self):
        if not isinstance(self.value, str) or not self.value.strip():
            raise InvalidArgument("SampleCode cannot be empty.")
        object.__setattr__(self, "value", self.value.strip().upper())

    @classmethod
    def generate(cls, clock: AbstractClock) -> SampleCode:
        year = clock.now().year
        number = clock.randint(cls.RANDOM_MIN, cls.RANDOM_MAX)
        return cls(f"{cls.PREFIX}-{year:04d}-{number:06d}")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ResultValue:
    """
    A measured value with its unit and reference range.

    ``is_normal`` and ``status`` are derived from numeric, reference_min
    and reference_max only.
    """
    numeric: Decimal
    unit: str
    reference_min: Decimal
    reference_max: Decimal

    NORMAL = "Normal"
    LOW = "Low"
    HIGH = "High"

    def __post_init__(self):
        object.__setattr__(self, "numeric", _to_decimal(self.numeric, "Numeric"))
        object.__setattr__(self, "reference_min", _to_decimal(self.reference_min, "ReferenceMin"))
        object.__setattr__(self, "reference_max", _to_decimal(self.reference_max, "ReferenceMax"))
        if self.reference_min >= self.reference_max:
            raise InvalidArgument("ReferenceMin must be less than ReferenceMax.")
        object.__setattr__(self, "unit", (self.unit or "").strip())

    @property
    def is_normal(self) -> bool:
        return self.reference_min <= self.numeric <= self.reference_max

    @property
    def status(self) -> str:
        if self.numeric < self.reference_min:
            return self.LOW
        if self.numeric > self.reference_max:
            return self.HIGH
        return self.NORMAL

    def __str__(self) -> str:
        return f"{self.numeric} {self.unit} ({self.status})"


@dataclass(frozen=True)
class Email:
    value: str

    def __post_init__(self):
        if not isinstance(self.value, str) or not self.value.strip() or "@" not in self.value:
            raise InvalidArgument(f"Invalid email: {self.value!r}")
        object.__setattr__(self, "value", self.value.strip().lower())

    def __str__(self) -> str:
        return self.value
