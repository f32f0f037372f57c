"""Notification adapters - tell patients and doctors about results."""

import abc
import logging

logger = logging.getLogger(__name__)


class AbstractNotifications(abc.ABC):
    """Abstract base class for notification implementations."""

    @abc.abstractmethod
    def send_result_ready(self, patient_email: str, patient_name: str, sample_code: str):
        """
        Tell a patient that the result for a sample is available.

        Raises:
            NotificationError: if the message could not be sent
        """
        raise NotImplementedError

    @abc.abstractmethod
    def send_abnormal_alert(self, doctor_email: str, sample_code: str, analysis_type: str):
        """
        Alert a doctor that a validated result lies outside its reference range.

        Raises:
            NotificationError: if the message could not be sent
        """
        raise NotImplementedError


class LoggingNotifications(AbstractNotifications):
    """Writes notifications to the log instead of sending email."""

    def send_result_ready(self, patient_email, patient_name, sample_code):
        logger.info(f"[EMAIL] Result ready for {patient_name} ({patient_email}) - {sample_code}")

    def send_abnormal_alert(self, doctor_email, sample_code, analysis_type):
        logger.warning(f"[EMAIL] ABNORMAL result {sample_code} ({analysis_type}) - alerting {doctor_email}")


class NotificationError(Exception):
    """Exception raised when a notification could not be delivered."""
    pass
