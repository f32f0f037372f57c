"""
Lab Results API - Thin API with command dispatch.

Following Cosmic Python pattern: write endpoints build a command and hand it
to the message bus, read endpoints delegate to views.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import List
from uuid import UUID
import logging

from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from lab_results import views
from lab_results.adapters import orm
from lab_results.domain import commands
from lab_results.domain.exceptions import (
    AlreadyValidated,
    ConcurrencyConflict,
    DomainError,
    InfrastructureFailure,
    InvalidArgument,
    NotReady,
    OperationCancelled,
    SampleNotFound,
)
from lab_results.domain.model import AnalysisType
from lab_results.service_layer import messagebus
from lab_results.service_layer.dto import SampleDTO
from lab_results.service_layer.unit_of_work import (
    AbstractUnitOfWork,
    DEFAULT_SESSION_FACTORY,
    SqlAlchemyUnitOfWork,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    orm.create_tables(DEFAULT_SESSION_FACTORY.kw["bind"])
    logger.info("Lab results tables ready")
    yield


app = FastAPI(
    title="Lab Results API",
    description="Laboratory sample lifecycle: intake, results, validation, patient notification",
    version="1.0.0",
    lifespan=lifespan,
)


def get_uow() -> AbstractUnitOfWork:
    return SqlAlchemyUnitOfWork()


class SubmitSampleRequest(BaseModel):
    patient_id: UUID
    analysis_type: str

    @field_validator("analysis_type")
    @classmethod
    def known_analysis_type(cls, value: str) -> str:
        return AnalysisType.parse(value).value


class AddResultRequest(BaseModel):
    numeric: Decimal = Field(ge=0)
    unit: str = Field(min_length=1, max_length=20)
    reference_min: Decimal = Field(ge=0)
    reference_max: Decimal
    notes: str = ""

    @model_validator(mode="after")
    def range_is_ordered(self):
        if self.reference_max <= self.reference_min:
            raise ValueError("ReferenceMax must be greater than ReferenceMin.")
        return self


class ValidateResultRequest(BaseModel):
    doctor_id: UUID
    notes: str = ""


class RejectSampleRequest(BaseModel):
    reason: str = Field(min_length=1)


class NotifyPatientRequest(BaseModel):
    patient_email: EmailStr
    patient_name: str = Field(min_length=1)


ERROR_STATUS = [
    (InvalidArgument, 400),
    (SampleNotFound, 404),
    (AlreadyValidated, 409),
    (NotReady, 409),
    (ConcurrencyConflict, 409),
    (InfrastructureFailure, 503),
    (OperationCancelled, 503),
]


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    status_code = next((code for kind, code in ERROR_STATUS if isinstance(exc, kind)), 500)
    logger.info(f"{request.method} {request.url.path} failed with {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "lab-results-api",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@app.post("/api/samples", response_model=SampleDTO, status_code=201)
def submit_sample(body: SubmitSampleRequest, response: Response, uow: AbstractUnitOfWork = Depends(get_uow)):
    cmd = commands.SubmitSample(patient_id=body.patient_id, analysis_type=body.analysis_type)
    [sample] = messagebus.handle(cmd, uow)
    response.headers["Location"] = f"/api/samples/{sample.id}"
    return sample


@app.post("/api/samples/{sample_id}/result", response_model=SampleDTO)
def add_result(sample_id: UUID, body: AddResultRequest, uow: AbstractUnitOfWork = Depends(get_uow)):
    cmd = commands.AddResult(
        sample_id=sample_id,
        numeric=body.numeric,
        unit=body.unit,
        reference_min=body.reference_min,
        reference_max=body.reference_max,
        notes=body.notes,
    )
    [sample] = messagebus.handle(cmd, uow)
    return sample


@app.post("/api/samples/{sample_id}/validate", response_model=SampleDTO)
def validate_result(sample_id: UUID, body: ValidateResultRequest, uow: AbstractUnitOfWork = Depends(get_uow)):
    cmd = commands.ValidateResult(sample_id=sample_id, doctor_id=body.doctor_id, notes=body.notes)
    [sample] = messagebus.handle(cmd, uow)
    return sample


@app.post("/api/samples/{sample_id}/reject", response_model=SampleDTO)
def reject_sample(sample_id: UUID, body: RejectSampleRequest, uow: AbstractUnitOfWork = Depends(get_uow)):
    [sample] = messagebus.handle(commands.RejectSample(sample_id=sample_id, reason=body.reason), uow)
    return sample


@app.post("/api/samples/{sample_id}/notify")
def notify_patient(sample_id: UUID, body: NotifyPatientRequest, uow: AbstractUnitOfWork = Depends(get_uow)) -> bool:
    cmd = commands.NotifyPatient(
        sample_id=sample_id,
        patient_email=str(body.patient_email),
        patient_name=body.patient_name,
    )
    [notified] = messagebus.handle(cmd, uow)
    return notified


# Registered before /api/samples/{sample_id} so the literal path wins
@app.get("/api/samples/pending-validation", response_model=List[SampleDTO])
def get_pending_validation(uow: AbstractUnitOfWork = Depends(get_uow)):
    return views.get_pending_validation(uow)


@app.get("/api/samples/code/{code}", response_model=SampleDTO)
def get_sample_by_code(code: str, uow: AbstractUnitOfWork = Depends(get_uow)):
    return views.get_sample_by_code(code, uow)


@app.get("/api/samples/{sample_id}", response_model=SampleDTO)
def get_sample(sample_id: UUID, uow: AbstractUnitOfWork = Depends(get_uow)):
    return views.get_sample(sample_id, uow)


@app.get("/api/patients/{patient_id}/samples", response_model=List[SampleDTO])
def get_patient_samples(patient_id: UUID, uow: AbstractUnitOfWork = Depends(get_uow)):
    return views.get_patient_samples(patient_id, uow)


@app.get("/api/samples/{sample_id}/report")
def get_sample_report(sample_id: UUID, uow: AbstractUnitOfWork = Depends(get_uow)):
    report = views.generate_report(sample_id, uow)
    return Response(
        content=report,
        media_type="text/plain; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="result-{sample_id}.txt"'},
    )
