"""Document adapters - render human-readable result reports."""

import abc
import logging

from lab_results.domain.exceptions import SampleNotFound

logger = logging.getLogger(__name__)


class AbstractDocumentGenerator(abc.ABC):

    @abc.abstractmethod
    def generate_report(self, sample_id) -> bytes:
        """
        Render the result report of a sample.

        Raises:
            SampleNotFound: if no sample has this id
        """
        raise NotImplementedError


class TextReportGenerator(AbstractDocumentGenerator):
    """Plain-text UTF-8 report built from the sample repository."""

    def __init__(self, repository):
        self.repository = repository

    def generate_report(self, sample_id) -> bytes:
        sample = self.repository.get(sample_id)
        if sample is None:
            raise SampleNotFound(sample_id)

        lines = [
            "LAB RESULT REPORT",
            f"Sample: {sample.code}",
            f"Patient: {sample.patient_id}",
            f"Analysis: {sample.analysis_type.value}",
            f"Status: {sample.status.value}",
            f"Date: {sample.received_at:%Y-%m-%d}",
        ]
        if sample.result is not None:
            value = sample.result.value
            lines.append(f"Result: {value.numeric} {value.unit} ({value.status})")
            lines.append(f"Reference range: {value.reference_min} - {value.reference_max} {value.unit}")
            lines.append(f"Notes: {sample.result.notes}")
        if sample.validated_at is not None:
            lines.append(f"Validated: {sample.validated_at:%Y-%m-%d %H:%M} UTC")

        logger.info(f"[REPORT] Generated for {sample.code}")
        return ("\n".join(lines) + "\n").encode("utf-8")
