import logging
import threading
from typing import Optional

import config
from lab_results.adapters.notifications import NotificationError
from lab_results.domain import commands, events
from lab_results.domain.exceptions import (
    InfrastructureFailure,
    OperationCancelled,
    SampleNotFound,
)
from lab_results.domain.model import Sample
from lab_results.domain.value_objects import Email, ResultValue
from lab_results.service_layer.dto import SampleDTO, to_dto
from lab_results.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)

Cancel = Optional[threading.Event]


def submit_sample(
    command: commands.SubmitSample,
    uow: AbstractUnitOfWork,
    cancel: Cancel = None,
) -> SampleDTO:
    """
    Register a newly received sample.

    Raises:
        InvalidArgument: empty patient id or unknown analysis type
        InfrastructureFailure: sample could not be stored (including a
            sample code collision)
    """
    logger.info(f"Processing SubmitSample for patient {command.patient_id} ({command.analysis_type})")

    with uow:
        sample, _ = Sample.create(command.patient_id, command.analysis_type, uow.clock)
        check_cancelled(cancel, "SubmitSample")
        uow.samples.add(sample)
        uow.commit()
        logger.info(f"Committed new sample {sample.sample_id} with code {sample.code}")

    return to_dto(sample)


def add_result(
    command: commands.AddResult,
    uow: AbstractUnitOfWork,
    cancel: Cancel = None,
) -> SampleDTO:
    """
    Attach a measured result to a sample.

    Flow:
    1. Fetch sample (SampleNotFound if absent)
    2. Build the ResultValue and call Sample.add_result
    3. Persist and commit
    """
    logger.info(f"Processing AddResult for sample {command.sample_id}")

    with uow:
        sample = fetch_sample(uow, command.sample_id)
        value = ResultValue(
            command.numeric,
            command.unit,
            command.reference_min,
            command.reference_max,
        )
        sample, event = sample.add_result(value, uow.clock, command.notes)
        check_cancelled(cancel, "AddResult")
        uow.samples.update(sample)
        uow.commit()
        logger.info(f"Committed result for sample {sample.code}: {value}")

    return to_dto(sample)


def validate_result(
    command: commands.ValidateResult,
    uow: AbstractUnitOfWork,
    cancel: Cancel = None,
) -> SampleDTO:
    """
    Record a doctor's validation of a completed result.

    Raises:
        SampleNotFound, AlreadyValidated, NotReady
    """
    logger.info(f"Processing ValidateResult for sample {command.sample_id} by doctor {command.doctor_id}")

    with uow:
        sample = fetch_sample(uow, command.sample_id)
        sample, event = sample.validate(command.doctor_id, uow.clock, command.notes)
        check_cancelled(cancel, "ValidateResult")
        uow.samples.update(sample)
        uow.commit()
        logger.info(f"Committed validation of sample {sample.code} (normal={event.is_normal})")

    return to_dto(sample)


def reject_sample(
    command: commands.RejectSample,
    uow: AbstractUnitOfWork,
    cancel: Cancel = None,
) -> SampleDTO:
    logger.info(f"Processing RejectSample for sample {command.sample_id}: {command.reason}")

    with uow:
        sample = fetch_sample(uow, command.sample_id)
        sample = sample.reject(command.reason)
        check_cancelled(cancel, "RejectSample")
        uow.samples.update(sample)
        uow.commit()
        logger.info(f"Committed rejection of sample {sample.code}")

    # Rejection emits no event, so the cache is cleared here
    invalidate_cached_sample(uow, sample.sample_id, sample.code.value)
    return to_dto(sample)


def notify_patient(
    command: commands.NotifyPatient,
    uow: AbstractUnitOfWork,
    cancel: Cancel = None,
) -> bool:
    """
    Tell the patient that the validated result is ready.

    The notified state is computed before the message goes out, so a sample
    that is not validated fails with NotReady without sending anything. The
    message is sent before the new state is persisted: if sending fails the
    sample stays Validated and the command can be retried.

    Raises:
        SampleNotFound, NotReady, InvalidArgument (malformed email),
        InfrastructureFailure (notification could not be sent)
    """
    logger.info(f"Processing NotifyPatient for sample {command.sample_id}")

    email = Email(command.patient_email)

    with uow:
        sample = fetch_sample(uow, command.sample_id)
        notified, _ = sample.mark_notified(email.value, uow.clock)
        check_cancelled(cancel, "NotifyPatient")

        try:
            uow.notifications.send_result_ready(email.value, command.patient_name, sample.code.value)
        except NotificationError as e:
            logger.error(f"Failed to notify patient for sample {sample.code}: {e}")
            raise InfrastructureFailure(f"Notification for sample {sample.code} failed") from e

        uow.samples.update(notified)
        uow.commit()
        logger.info(f"Committed patient notification for sample {sample.code}")

    return True


def fetch_sample(uow: AbstractUnitOfWork, sample_id) -> Sample:
    sample = uow.samples.get(sample_id)
    if sample is None:
        raise SampleNotFound(sample_id)
    return sample


def check_cancelled(cancel: Cancel, operation: str):
    if cancel is not None and cancel.is_set():
        logger.info(f"{operation} cancelled before persisting")
        raise OperationCancelled(f"{operation} was cancelled")


def publish_event(event, uow: AbstractUnitOfWork):
    """
    Publish a lifecycle event to external systems.

    Following Cosmic Python pattern: publish domain events to Redis
    for consumption by external services (e.g. portals, dashboards).
    """
    logger.info(f"Publishing {type(event).__name__} for sample {event.sample_code}")
    uow.publisher.publish(config.get_events_channel(), event)


def invalidate_sample_cache(event, uow: AbstractUnitOfWork):
    """Drop cached representations of a sample after it changed."""
    invalidate_cached_sample(uow, event.sample_id, event.sample_code)


def send_abnormal_result_alert(event: events.ResultValidated, uow: AbstractUnitOfWork):
    """Alert the on-call doctor when a validated result is outside its reference range."""
    if event.is_normal:
        return

    logger.info(f"Sending abnormal result alert for sample {event.sample_code}")
    uow.notifications.send_abnormal_alert(
        config.get_alert_email(),
        event.sample_code,
        event.analysis_type,
    )


def invalidate_cached_sample(uow: AbstractUnitOfWork, sample_id, sample_code: str):
    try:
        uow.cache.remove(sample_cache_key(sample_id))
        uow.cache.remove(code_cache_key(sample_code))
    except InfrastructureFailure as e:
        logger.warning(f"Could not invalidate cache for sample {sample_code}: {e}")


def sample_cache_key(sample_id) -> str:
    return f"sample:{sample_id}"


def code_cache_key(sample_code: str) -> str:
    return f"sample-code:{sample_code.upper()}"
