import json
import logging

from fieldops.core.logging_setup import JsonFormatter, mask_secrets
from fieldops.core.request_context import (
    bind_request_context,
    current_request_context,
    reset_request_context,
    update_request_context,
)
from tests.fixtures_data import auth_headers, make_company, make_user


def _record(message, **extra):
    record = logging.LogRecord("fieldops.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_mask_secrets_in_plain_and_json_text():
    masked = mask_secrets(
        'xero token response {"access_token": "abc.def", "refresh_token": "r-1"} '
        "password=hunter22 Authorization: Bearer eyJhbGci client_secret='s3'"
    )

    for secret in ("abc.def", "r-1", "hunter22", "eyJhbGci", "s3"):
        assert secret not in masked
    assert '"access_token": "***"' in masked


def test_formatter_reads_the_bound_context():
    token = bind_request_context("req-1")
    try:
        update_request_context(user_id=7, company_id=None, god_mode=True)
        payload = json.loads(JsonFormatter("%(message)s").format(_record("hello")))
    finally:
        reset_request_context(token)

    assert payload["request_id"] == "req-1"
    assert payload["user_id"] == 7
    assert payload["company_id"] == "god_mode"
    assert payload["message"] == "hello"
    assert current_request_context() is None


def test_updates_outside_a_request_are_ignored():
    update_request_context(user_id=1)

    payload = json.loads(JsonFormatter("%(message)s").format(_record("idle", status_code=200)))

    assert payload["user_id"] is None
    assert payload["status_code"] == 200


def test_request_log_line_carries_user_and_company(client, db_session, caplog):
    company = make_company(db_session)
    user = make_user(db_session, company, email="tech@example.com")
    caplog.set_level(logging.INFO, logger="fieldops.middleware.observability")

    response = client.get("/api/jobs", headers={**auth_headers(user), "X-Request-ID": "abc-123"})

    assert response.headers["X-Request-ID"] == "abc-123"
    records = [record for record in caplog.records if record.getMessage() == "request completed"]
    assert records
    assert records[-1].request_id == "abc-123"
    assert records[-1].user_id == user.id
    assert records[-1].company_id == company.id
    assert records[-1].status_code == 200
