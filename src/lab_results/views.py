"""
Views for read operations - separate from command/write path.

Following Cosmic Python CQRS pattern: views never mutate samples or emit
events. Single-sample lookups read through the cache; the cache is advisory,
so a cache failure or an unreadable entry is logged and the repository
answers instead.
"""
import logging
import threading
from typing import List, Optional

from pydantic import ValidationError

import config
from lab_results.domain.exceptions import InfrastructureFailure, SampleNotFound
from lab_results.domain.model import Sample
from lab_results.domain.value_objects import SampleCode, parse_uuid
from lab_results.service_layer.dto import SampleDTO, to_dto
from lab_results.service_layer.handlers import check_cancelled, code_cache_key, sample_cache_key
from lab_results.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)


def get_sample(sample_id, uow: AbstractUnitOfWork, cancel: Optional[threading.Event] = None) -> SampleDTO:
    """
    Retrieve a sample by id.

    Raises:
        SampleNotFound: if no sample has this id
    """
    sample_id = parse_uuid(sample_id, "Sample id")
    key = sample_cache_key(sample_id)

    cached = _cache_get(uow, key)
    if cached is not None:
        return cached

    with uow:
        sample = uow.samples.get(sample_id)
        check_cancelled(cancel, "get_sample")
        if sample is None:
            raise SampleNotFound(sample_id)

    _cache_set(uow, key, sample)
    return to_dto(sample)


def get_sample_by_code(code: str, uow: AbstractUnitOfWork, cancel: Optional[threading.Event] = None) -> SampleDTO:
    """Retrieve a sample by its lab ticket code, ignoring case."""
    code = SampleCode(code).value
    key = code_cache_key(code)

    cached = _cache_get(uow, key)
    if cached is not None:
        return cached

    with uow:
        sample = uow.samples.get_by_code(code)
        check_cancelled(cancel, "get_sample_by_code")
        if sample is None:
            raise SampleNotFound(code)

    _cache_set(uow, key, sample)
    return to_dto(sample)


def get_patient_samples(patient_id, uow: AbstractUnitOfWork, cancel: Optional[threading.Event] = None) -> List[SampleDTO]:
    with uow:
        samples = uow.samples.get_by_patient(patient_id)
        check_cancelled(cancel, "get_patient_samples")
        return [to_dto(s) for s in samples]


def get_pending_validation(uow: AbstractUnitOfWork, cancel: Optional[threading.Event] = None) -> List[SampleDTO]:
    """Samples with a completed result that still await doctor validation."""
    with uow:
        samples = uow.samples.get_pending_validation()
        check_cancelled(cancel, "get_pending_validation")
        return [to_dto(s) for s in samples]


def generate_report(sample_id, uow: AbstractUnitOfWork) -> bytes:
    """Render the result report; delegates entirely to the document port."""
    with uow:
        return uow.documents.generate_report(parse_uuid(sample_id, "Sample id"))


def _cache_get(uow: AbstractUnitOfWork, key: str) -> Optional[SampleDTO]:
    try:
        cached = uow.cache.get(key)
    except InfrastructureFailure as e:
        logger.warning(f"Cache unavailable, reading {key} from repository: {e}")
        return None
    if cached is None:
        return None
    try:
        dto = SampleDTO.model_validate_json(cached)
    except ValidationError as e:
        logger.warning(f"Dropping unreadable cache entry {key}: {e}")
        _cache_remove(uow, key)
        return None
    logger.debug(f"Cache hit for {key}")
    return dto


def _cache_set(uow: AbstractUnitOfWork, key: str, sample: Sample):
    """
    Cache the sample, then drop the entry again if a write committed since
    it was read. A writer that commits after this check invalidates the
    entry itself once its events are handled.
    """
    try:
        uow.cache.set(key, to_dto(sample).model_dump_json(), config.get_cache_ttl_seconds())
    except InfrastructureFailure as e:
        logger.warning(f"Could not cache {key}: {e}")
        return

    with uow:
        current = uow.samples.get(sample.sample_id)
    if current is None or current.version_number != sample.version_number:
        logger.info(f"Sample {sample.code} changed while caching {key}, dropping entry")
        _cache_remove(uow, key)


def _cache_remove(uow: AbstractUnitOfWork, key: str):
    try:
        uow.cache.remove(key)
    except InfrastructureFailure as e:
        logger.warning(f"Could not remove cache entry {key}: {e}")
