"""Commands for the lab results service."""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from shared.domain.commands import Command


@dataclass(frozen=True)
class SubmitSample(Command):
    """Command to register a new sample at intake."""
    patient_id: UUID
    analysis_type: str  # AnalysisType name, case-insensitive


@dataclass(frozen=True)
class AddResult(Command):
    """Command to attach a measured result to a sample."""
    sample_id: UUID
    numeric: Decimal
    unit: str
    reference_min: Decimal
    reference_max: Decimal
    notes: str = ""


@dataclass(frozen=True)
class ValidateResult(Command):
    """Command for a doctor to validate a completed result."""
    sample_id: UUID
    doctor_id: UUID
    notes: str = ""


@dataclass(frozen=True)
class RejectSample(Command):
    sample_id: UUID
    reason: str


@dataclass(frozen=True)
class NotifyPatient(Command):
    """Command to tell the patient that a validated result is ready."""
    sample_id: UUID
    patient_email: str
    patient_name: str
