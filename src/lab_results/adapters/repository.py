import abc
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from lab_results.adapters import orm
from lab_results.domain import model
from lab_results.domain.exceptions import ConcurrencyConflict, InfrastructureFailure
from lab_results.domain.value_objects import (
    DoctorId,
    PatientId,
    ResultValue,
    SampleCode,
    parse_uuid,
)

logger = logging.getLogger(__name__)


class AbstractRepository(abc.ABC):
    """
    Persistence port for Sample aggregates.

    Every sample loaded, added or updated is tracked in ``seen`` (latest
    value per id) so the unit of work can drain its pending events after
    a successful commit.
    """

    def __init__(self):
        self.seen = {}  # type: Dict[UUID, model.Sample]

    def add(self, sample: model.Sample) -> UUID:
        self._add(sample)
        self.seen[sample.sample_id] = sample
        return sample.sample_id

    def update(self, sample: model.Sample) -> model.Sample:
        """
        Persist the full state of the sample.

        Returns the stored value with its bumped version number.

        Raises:
            ConcurrencyConflict: the stored version is not the one the
                sample was loaded with
        """
        stored = self._update(sample)
        self.seen[stored.sample_id] = stored
        return stored

    def get(self, sample_id) -> Optional[model.Sample]:
        sample = self._get(sample_id)
        if sample:
            self._track(sample)
        return sample

    def get_by_code(self, code) -> Optional[model.Sample]:
        sample = self._get_by_code(SampleCode(str(code)).value)
        if sample:
            self._track(sample)
        return sample

    def get_by_patient(self, patient_id) -> List[model.Sample]:
        samples = self._get_by_patient(PatientId(patient_id).value)
        for sample in samples:
            self._track(sample)
        return samples

    def get_pending_validation(self) -> List[model.Sample]:
        samples = self._get_pending_validation()
        for sample in samples:
            self._track(sample)
        return samples

    def _track(self, sample: model.Sample):
        # A sample already modified in this unit of work keeps its pending events
        self.seen.setdefault(sample.sample_id, sample)

    @abc.abstractmethod
    def _add(self, sample: model.Sample):
        raise NotImplementedError

    @abc.abstractmethod
    def _update(self, sample: model.Sample) -> model.Sample:
        raise NotImplementedError

    @abc.abstractmethod
    def _get(self, sample_id) -> Optional[model.Sample]:
        raise NotImplementedError

    @abc.abstractmethod
    def _get_by_code(self, code: str) -> Optional[model.Sample]:
        raise NotImplementedError

    @abc.abstractmethod
    def _get_by_patient(self, patient_id: UUID) -> List[model.Sample]:
        raise NotImplementedError

    @abc.abstractmethod
    def _get_pending_validation(self) -> List[model.Sample]:
        raise NotImplementedError


class SqlAlchemyRepository(AbstractRepository):
    """Optimistic versioning: updates only apply to the version that was loaded."""

    def __init__(self, session):
        super().__init__()
        self.session = session

    def _add(self, sample):
        try:
            self.session.execute(insert(orm.samples).values(**to_row(sample)))
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert sample {sample.sample_id}: {e}")
            raise InfrastructureFailure(f"Could not store sample {sample.code}") from e

    def _update(self, sample):
        new_version = sample.version_number + 1
        stmt = (
            update(orm.samples)
            .where(orm.samples.c.id == sample.sample_id)
            .where(orm.samples.c.version_number == sample.version_number)
            .values(**dict(to_row(sample), version_number=new_version))
        )
        try:
            result = self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Failed to update sample {sample.sample_id}: {e}")
            raise InfrastructureFailure(f"Could not update sample {sample.code}") from e

        if result.rowcount == 0:
            raise ConcurrencyConflict(sample.sample_id, sample.version_number)

        return replace(sample, version_number=new_version)

    def _get(self, sample_id):
        return self._first(orm.samples.c.id == parse_uuid(sample_id, "Sample id"))

    def _get_by_code(self, code):
        return self._first(orm.samples.c.code == code)

    def _get_by_patient(self, patient_id):
        return self._all(orm.samples.c.patient_id == patient_id)

    def _get_pending_validation(self):
        return self._all(orm.samples.c.status == model.SampleStatus.COMPLETED.value)

    def _first(self, criterion) -> Optional[model.Sample]:
        row = self._execute(select(orm.samples).where(criterion)).first()
        return to_domain(row) if row else None

    def _all(self, criterion) -> List[model.Sample]:
        stmt = select(orm.samples).where(criterion).order_by(orm.samples.c.received_at)
        return [to_domain(row) for row in self._execute(stmt)]

    def _execute(self, stmt):
        try:
            return self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Failed to query samples: {e}")
            raise InfrastructureFailure("Could not load samples") from e


def to_row(sample: model.Sample) -> dict:
    result = sample.result
    return dict(
        id=sample.sample_id,
        code=sample.code.value,
        patient_id=sample.patient_id.value,
        analysis_type=sample.analysis_type.value,
        status=sample.status.value,
        result_status=sample.result_status.value,
        result_id=result.result_id if result else None,
        result_type=result.analysis_type.value if result else None,
        result_numeric=result.value.numeric if result else None,
        result_unit=result.value.unit if result else None,
        result_ref_min=result.value.reference_min if result else None,
        result_ref_max=result.value.reference_max if result else None,
        result_notes=result.notes if result else None,
        result_completed_at=result.completed_at if result else None,
        validated_by_id=sample.validated_by.value if sample.validated_by else None,
        validation_notes=sample.validation_notes,
        rejection_reason=sample.rejection_reason,
        received_at=sample.received_at,
        validated_at=sample.validated_at,
        notified_at=sample.notified_at,
        version_number=sample.version_number,
    )


def to_domain(row) -> model.Sample:
    m = row._mapping
    result = None
    if m["result_id"] is not None:
        result = model.AnalysisResult(
            result_id=m["result_id"],
            analysis_type=model.AnalysisType(m["result_type"]),
            value=ResultValue(
                m["result_numeric"],
                m["result_unit"],
                m["result_ref_min"],
                m["result_ref_max"],
            ),
            notes=m["result_notes"] or "",
            completed_at=_as_utc(m["result_completed_at"]),
        )
    return model.Sample(
        sample_id=m["id"],
        code=SampleCode(m["code"]),
        patient_id=PatientId(m["patient_id"]),
        analysis_type=model.AnalysisType(m["analysis_type"]),
        status=model.SampleStatus(m["status"]),
        result_status=model.ResultStatus(m["result_status"]),
        received_at=_as_utc(m["received_at"]),
        result=result,
        validated_by=DoctorId(m["validated_by_id"]) if m["validated_by_id"] else None,
        validation_notes=m["validation_notes"],
        validated_at=_as_utc(m["validated_at"]),
        notified_at=_as_utc(m["notified_at"]),
        rejection_reason=m["rejection_reason"],
        version_number=m["version_number"],
    )


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
