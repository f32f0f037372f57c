"""Outward representation of a sample - the stable contract for transports."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from lab_results.domain.model import Sample


class ResultDTO(BaseModel):
    numeric: Decimal
    unit: str
    result_status: str  # derived: Normal / Low / High
    is_normal: bool
    notes: str
    completed_at: datetime


class SampleDTO(BaseModel):
    id: UUID
    code: str
    patient_id: UUID
    analysis_type: str
    status: str
    result_status: str
    result: Optional[ResultDTO] = None
    received_at: datetime


def to_dto(sample: Sample) -> SampleDTO:
    result = None
    if sample.result is not None:
        value = sample.result.value
        result = ResultDTO(
            numeric=value.numeric,
            unit=value.unit,
            result_status=value.status,
            is_normal=value.is_normal,
            notes=sample.result.notes,
            completed_at=sample.result.completed_at,
        )
    return SampleDTO(
        id=sample.sample_id,
        code=sample.code.value,
        patient_id=sample.patient_id.value,
        analysis_type=sample.analysis_type.value,
        status=sample.status.value,
        result_status=sample.result_status.value,
        result=result,
        received_at=sample.received_at,
    )
