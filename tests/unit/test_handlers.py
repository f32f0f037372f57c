"""
Unit tests for command handlers and the message bus, using fake adapters.
"""
import threading
from decimal import Decimal
from uuid import uuid4

import pytest

from lab_results.adapters.notifications import NotificationError
from lab_results.domain import commands
from lab_results.domain.events import (
    PatientNotified,
    ResultCompleted,
    ResultValidated,
    SampleReceived,
)
from lab_results.domain.exceptions import (
    AlreadyValidated,
    InfrastructureFailure,
    InvalidArgument,
    NotReady,
    OperationCancelled,
    SampleNotFound,
)
from lab_results.service_layer import messagebus


def submit(uow, patient_id, analysis_type="Glucose"):
    [dto] = messagebus.handle(commands.SubmitSample(patient_id, analysis_type), uow)
    return dto


def add_result(uow, sample_id, numeric="5.5"):
    cmd = commands.AddResult(sample_id, Decimal(numeric), "mmol/L", Decimal("3.9"), Decimal("6.1"), "ok")
    [dto] = messagebus.handle(cmd, uow)
    return dto


def validate(uow, sample_id, doctor_id):
    [dto] = messagebus.handle(commands.ValidateResult(sample_id, doctor_id, "All good"), uow)
    return dto


def notify(uow, sample_id, email="jane.doe@clinic-mail.ch"):
    [result] = messagebus.handle(commands.NotifyPatient(sample_id, email, "Jane Doe"), uow)
    return result


def published_types(uow):
    return [type(event) for _, event in uow.publisher.published]


class TestSubmitSample:

    def test_adds_sample_and_commits(self, uow, patient_id):
        dto = submit(uow, patient_id)

        stored = uow.samples.get(dto.id)
        assert stored is not None
        assert dto.status == "Received"
        assert dto.result_status == "Pending"
        assert dto.analysis_type == "Glucose"
        assert dto.code.startswith("LAB-2026-")
        assert dto.result is None
        assert uow.commit_count == 1

    def test_publishes_sample_received_after_commit(self, uow, patient_id):
        submit(uow, patient_id)

        assert published_types(uow) == [SampleReceived]
        assert uow.publisher.published[0][0] == "lab:samples"

    def test_empty_patient_fails_without_storing(self, uow):
        with pytest.raises(InvalidArgument):
            submit(uow, "")

        assert uow.commit_count == 0
        assert uow.publisher.published == []

    def test_unknown_analysis_type_fails(self, uow, patient_id):
        with pytest.raises(InvalidArgument):
            submit(uow, patient_id, "Biopsy")


class TestAddResult:

    def test_completes_sample(self, uow, patient_id):
        sample = submit(uow, patient_id)

        dto = add_result(uow, sample.id)

        assert dto.status == "Completed"
        assert dto.result.is_normal is True
        assert dto.result.result_status == "Normal"
        assert dto.result.numeric == Decimal("5.5")
        assert uow.samples.get(sample.id).version_number == 1

    def test_unknown_sample_fails_not_found(self, uow):
        with pytest.raises(SampleNotFound):
            add_result(uow, uuid4())

    def test_invalid_reference_range_fails(self, uow, patient_id):
        sample = submit(uow, patient_id)
        cmd = commands.AddResult(sample.id, Decimal("5"), "mmol/L", Decimal("6.1"), Decimal("3.9"))

        with pytest.raises(InvalidArgument):
            messagebus.handle(cmd, uow)

        assert uow.samples.get(sample.id).status.value == "Received"


class TestValidateResult:

    def test_validates_completed_result(self, uow, patient_id, doctor_id):
        sample = submit(uow, patient_id)
        add_result(uow, sample.id)

        dto = validate(uow, sample.id, doctor_id)

        assert dto.status == "Validated"
        assert dto.result_status == "Validated"
        assert uow.samples.get(sample.id).validated_by.value == doctor_id

    def test_not_ready_without_result(self, uow, patient_id, doctor_id):
        sample = submit(uow, patient_id)

        with pytest.raises(NotReady):
            validate(uow, sample.id, doctor_id)

    def test_second_validation_fails_and_keeps_state(self, uow, patient_id, doctor_id):
        sample = submit(uow, patient_id)
        add_result(uow, sample.id)
        validate(uow, sample.id, doctor_id)
        stored = uow.samples.get(sample.id)

        with pytest.raises(AlreadyValidated):
            validate(uow, sample.id, uuid4())

        assert uow.samples.get(sample.id) == stored

    def test_abnormal_result_alerts_on_call_doctor(self, uow, patient_id, doctor_id):
        sample = submit(uow, patient_id)
        add_result(uow, sample.id, numeric="7.0")

        validate(uow, sample.id, doctor_id)

        assert uow.notifications.abnormal_alerts == [
            ("oncall-doctor@lab.local", sample.code, "Glucose"),
        ]

    def test_normal_result_sends_no_alert(self, uow, patient_id, doctor_id):
        sample = submit(uow, patient_id)
        add_result(uow, sample.id)

        validate(uow, sample.id, doctor_id)

        assert uow.notifications.abnormal_alerts == []

    def test_failing_alert_does_not_undo_validation(self, uow, patient_id, doctor_id):
        def broken_alert(*args):
            raise NotificationError("smtp down")

        uow.notifications.send_abnormal_alert = broken_alert
        sample = submit(uow, patient_id)
        add_result(uow, sample.id, numeric="7.0")

        dto = validate(uow, sample.id, doctor_id)

        assert dto.status == "Validated"
        assert ResultValidated in published_types(uow)


class TestRejectSample:

    def test_rejects_from_any_state_without_event(self, uow, patient_id, doctor_id):
        sample = submit(uow, patient_id)
        add_result(uow, sample.id)
        validate(uow, sample.id, doctor_id)
        published_before = list(uow.publisher.published)

        [dto] = messagebus.handle(commands.RejectSample(sample.id, "mislabelled"), uow)

        assert dto.status == "Rejected"
        assert dto.result is not None
        assert uow.samples.get(sample.id).rejection_reason == "mislabelled"
        assert uow.publisher.published == published_before


class TestNotifyPatient:

    def test_sends_message_then_marks_notified(self, uow, patient_id, doctor_id):
        sample = submit(uow, patient_id)
        add_result(uow, sample.id)
        validate(uow, sample.id, doctor_id)

        assert notify(uow, sample.id, "Jane.Doe@Clinic-Mail.ch") is True

        assert uow.notifications.results_ready == [
            ("jane.doe@clinic-mail.ch", "Jane Doe", sample.code),
        ]
        stored = uow.samples.get(sample.id)
        assert stored.result_status.value == "Notified"
        assert stored.notified_at is not None

    def test_not_validated_sample_sends_nothing(self, uow, patient_id):
        sample = submit(uow, patient_id)
        add_result(uow, sample.id)

        with pytest.raises(NotReady):
            notify(uow, sample.id)

        assert uow.notifications.results_ready == []

    def test_failed_notification_keeps_sample_validated(self, uow, patient_id, doctor_id):
        def broken_send(*args):
            raise NotificationError("smtp down")

        sample = submit(uow, patient_id)
        add_result(uow, sample.id)
        validate(uow, sample.id, doctor_id)
        uow.notifications.send_result_ready = broken_send

        with pytest.raises(InfrastructureFailure):
            notify(uow, sample.id)

        assert uow.samples.get(sample.id).result_status.value == "Validated"
        assert PatientNotified not in published_types(uow)

    def test_malformed_email_fails(self, uow, patient_id):
        sample = submit(uow, patient_id)

        with pytest.raises(InvalidArgument):
            notify(uow, sample.id, "not-an-email")


class TestEvents:

    def test_full_lifecycle_publishes_events_in_order(self, uow, patient_id, doctor_id):
        sample = submit(uow, patient_id)
        add_result(uow, sample.id)
        validate(uow, sample.id, doctor_id)
        notify(uow, sample.id)

        assert published_types(uow) == [
            SampleReceived,
            ResultCompleted,
            ResultValidated,
            PatientNotified,
        ]

    def test_events_stay_on_sample_when_commit_fails(self, uow, patient_id):
        sample = submit(uow, patient_id)

        def failing_commit():
            raise InfrastructureFailure("database unavailable")

        uow._commit = failing_commit

        with pytest.raises(InfrastructureFailure):
            add_result(uow, sample.id)

        pending = uow.samples.seen[sample.id].events
        assert [type(e) for e in pending] == [ResultCompleted]
        assert list(uow.collect_new_events()) == []
        assert published_types(uow) == [SampleReceived]

    def test_state_change_clears_cached_sample(self, uow, patient_id):
        from lab_results import views

        sample = submit(uow, patient_id)
        assert views.get_sample(sample.id, uow).status == "Received"

        add_result(uow, sample.id)

        assert views.get_sample(sample.id, uow).status == "Completed"


class TestCancellation:

    def test_cancelled_command_does_not_persist(self, uow, patient_id):
        sample = submit(uow, patient_id)
        cancel = threading.Event()
        cancel.set()
        cmd = commands.AddResult(sample.id, Decimal("5.5"), "mmol/L", Decimal("3.9"), Decimal("6.1"))

        with pytest.raises(OperationCancelled):
            messagebus.handle(cmd, uow, cancel=cancel)

        assert uow.samples.get(sample.id).status.value == "Received"
        assert uow.commit_count == 1

    def test_unset_signal_lets_command_run(self, uow, patient_id):
        sample = submit(uow, patient_id)
        cmd = commands.AddResult(sample.id, Decimal("5.5"), "mmol/L", Decimal("3.9"), Decimal("6.1"))

        [dto] = messagebus.handle(cmd, uow, cancel=threading.Event())

        assert dto.status == "Completed"
