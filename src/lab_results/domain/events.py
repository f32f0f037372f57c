"""Domain events for the sample lifecycle."""

from dataclasses import dataclass
from uuid import UUID

from shared.domain.commands import Event


@dataclass(frozen=True)
class SampleReceived(Event):
    """Event raised when a sample has been registered at intake."""
    sample_id: UUID
    sample_code: str
    patient_id: UUID
    analysis_type: str


@dataclass(frozen=True)
class ResultCompleted(Event):
    """Event raised when a measured result has been attached to a sample."""
    sample_id: UUID
    sample_code: str
    patient_id: UUID
    analysis_type: str


@dataclass(frozen=True)
class ResultValidated(Event):
    """Event raised when a doctor has validated a completed result."""
    sample_id: UUID
    sample_code: str
    patient_id: UUID
    doctor_id: UUID
    analysis_type: str
    is_normal: bool


@dataclass(frozen=True)
class PatientNotified(Event):
    """Event raised when the patient has been told the result is ready."""
    sample_id: UUID
    sample_code: str
    patient_id: UUID
    patient_email: str
