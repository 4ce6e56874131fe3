import json
import logging
import uuid

from app.logging_utils import log_event

logger = logging.getLogger("tests.logging_utils")


def test_log_event_emits_sorted_json_without_none_fields(caplog) -> None:
    job_id = uuid.UUID("6f1c3c1e-4a57-4bd0-9a51-0d0f5c2d7e11")

    with caplog.at_level(logging.INFO, logger="tests.logging_utils"):
        log_event(logger, logging.INFO, "savings_chunk_started", job_id=job_id, chunk=0, report_url=None)

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload == {"chunk": 0, "event": "savings_chunk_started", "job_id": str(job_id)}


def test_log_event_skips_disabled_levels(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="tests.logging_utils"):
        log_event(logger, logging.DEBUG, "savings_batch_flushed", rows=25)

    assert caplog.records == []
