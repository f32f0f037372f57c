"""
Sample lifecycle aggregate.

A Sample is an immutable value. Every lifecycle operation returns a new
Sample together with the event it emitted; the event is also appended to
the new Sample's pending events so the unit of work can publish it once the
new state has been committed.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple
from uuid import UUID, uuid4

from shared.domain.commands import Event
from lab_results.domain.clock import AbstractClock
from lab_results.domain.events import (
    PatientNotified,
    ResultCompleted,
    ResultValidated,
    SampleReceived,
)
from lab_results.domain.exceptions import AlreadyValidated, InvalidArgument, NotReady
from lab_results.domain.value_objects import (
    DoctorId,
    PatientId,
    ResultValue,
    SampleCode,
)


class SampleStatus(Enum):
    RECEIVED = "Received"
    PROCESSING = "Processing"  # reserved, no operation enters it yet
    COMPLETED = "Completed"
    VALIDATED = "Validated"
    REJECTED = "Rejected"


class ResultStatus(Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    VALIDATED = "Validated"
    NOTIFIED = "Notified"


class AnalysisType(Enum):
    BLOOD_COUNT = "BloodCount"
    GLUCOSE = "Glucose"
    CHOLESTEROL = "Cholesterol"
    THYROID = "Thyroid"
    URINE = "Urine"
    COVID = "Covid"
    HEPATITIS = "Hepatitis"
    HIV = "HIV"

    @classmethod
    def parse(cls, name) -> AnalysisType:
        """Look up an analysis type by name, ignoring case."""
        if isinstance(name, cls):
            return name
        key = str(name or "").strip().lower()
        for member in cls:
            if key in (member.value.lower(), member.name.lower()):
                return member
        valid = ", ".join(m.value for m in cls)
        raise InvalidArgument(f"AnalysisType must be one of: {valid}")


@dataclass(frozen=True)
class AnalysisResult:
    """Measured result owned by exactly one Sample."""
    result_id: UUID
    analysis_type: AnalysisType
    value: ResultValue
    notes: str
    completed_at: datetime

    @classmethod
    def create(
        cls,
        analysis_type: AnalysisType,
        value: ResultValue,
        clock: AbstractClock,
        notes: str = "",
    ) -> AnalysisResult:
        return cls(
            result_id=uuid4(),
            analysis_type=analysis_type,
            value=value,
            notes=notes or "",
            completed_at=clock.now(),
        )


@dataclass(frozen=True)
class Sample:
    sample_id: UUID
    code: SampleCode
    patient_id: PatientId
    analysis_type: AnalysisType
    status: SampleStatus
    result_status: ResultStatus
    received_at: datetime
    result: Optional[AnalysisResult] = None
    validated_by: Optional[DoctorId] = None
    validation_notes: Optional[str] = None
    validated_at: Optional[datetime] = None
    notified_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    version_number: int = 0
    events: Tuple[Event, ...] = field(default=(), compare=False, repr=False)

    @classmethod
    def create(cls, patient_id, analysis_type, clock: AbstractClock) -> Tuple[Sample, SampleReceived]:
        """
        Register a newly received sample.

        Raises:
            InvalidArgument: if patient_id is empty or analysis_type unknown
        """
        patient = PatientId(patient_id)
        kind = AnalysisType.parse(analysis_type)
        now = clock.now()
        sample = cls(
            sample_id=uuid4(),
            code=SampleCode.generate(clock),
            patient_id=patient,
            analysis_type=kind,
            status=SampleStatus.RECEIVED,
            result_status=ResultStatus.PENDING,
            received_at=now,
        )
        event = SampleReceived(
            sample_id=sample.sample_id,
            sample_code=sample.code.value,
            patient_id=patient.value,
            analysis_type=kind.value,
            occurred_at=now,
        )
        return sample._emit(event), event

    def add_result(
        self, value: ResultValue, clock: AbstractClock, notes: str = ""
    ) -> Tuple[Sample, ResultCompleted]:
        # No status precondition: an existing result is overwritten, even on a
        # validated or notified sample. See DESIGN.md, open questions.
        result = AnalysisResult.create(self.analysis_type, value, clock, notes)
        event = ResultCompleted(
            sample_id=self.sample_id,
            sample_code=self.code.value,
            patient_id=self.patient_id.value,
            analysis_type=self.analysis_type.value,
            occurred_at=result.completed_at,
        )
        changed = replace(
            self,
            result=result,
            status=SampleStatus.COMPLETED,
            result_status=ResultStatus.COMPLETED,
        )
        return changed._emit(event), event

    def validate(
        self, doctor_id, clock: AbstractClock, notes: str = ""
    ) -> Tuple[Sample, ResultValidated]:
        """
        Doctor sign-off on a completed result.

        Raises:
            AlreadyValidated: result is already validated or notified
            NotReady: no completed result to validate
            InvalidArgument: doctor_id is empty
        """
        if self.result_status in (ResultStatus.VALIDATED, ResultStatus.NOTIFIED):
            raise AlreadyValidated()
        if self.result_status != ResultStatus.COMPLETED:
            raise NotReady()
        doctor = DoctorId(doctor_id)
        now = clock.now()
        event = ResultValidated(
            sample_id=self.sample_id,
            sample_code=self.code.value,
            patient_id=self.patient_id.value,
            doctor_id=doctor.value,
            analysis_type=self.analysis_type.value,
            is_normal=self.result.value.is_normal,
            occurred_at=now,
        )
        changed = replace(
            self,
            validated_by=doctor,
            validation_notes=notes or "",
            validated_at=now,
            status=SampleStatus.VALIDATED,
            result_status=ResultStatus.VALIDATED,
        )
        return changed._emit(event), event

    def mark_notified(self, patient_email: str, clock: AbstractClock) -> Tuple[Sample, PatientNotified]:
        if self.result_status != ResultStatus.VALIDATED:
            raise NotReady("Result must be validated before the patient is notified.")
        now = clock.now()
        event = PatientNotified(
            sample_id=self.sample_id,
            sample_code=self.code.value,
            patient_id=self.patient_id.value,
            patient_email=patient_email,
            occurred_at=now,
        )
        changed = replace(self, result_status=ResultStatus.NOTIFIED, notified_at=now)
        return changed._emit(event), event

    def reject(self, reason: str) -> Sample:
        # Allowed from any state and emits no event. See DESIGN.md.
        return replace(self, status=SampleStatus.REJECTED, rejection_reason=reason)

    def drain_events(self) -> Tuple[Sample, Tuple[Event, ...]]:
        """Split off pending events, returning the sample without them."""
        return replace(self, events=()), self.events

    def _emit(self, event: Event) -> Sample:
        return replace(self, events=self.events + (event,))
