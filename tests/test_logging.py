from __future__ import annotations

import logging

from saucy.credentials.resolver import CredentialResolver
from saucy.credentials.stores import LocalKeyStore
from saucy.session import Anonymous
from saucy.util.logging import emit_event, get_logger, redact, register_secret, scrub


def test_redact_hides_value_but_keeps_length() -> None:
    assert redact("AIzaSy-secret-value") == "<redacted len=19>"
    assert redact(None) == "<empty>"
    assert redact("") == "<empty>"


def test_scrub_replaces_every_occurrence() -> None:
    text = "url=/v1/abc-secret-123/search retry=/v1/abc-secret-123/search"

    cleaned = scrub(text, "abc-secret-123", None)

    assert "abc-secret-123" not in cleaned
    assert cleaned.count("<redacted len=14>") == 2


def test_registered_secret_is_masked_in_any_saucy_log_line(caplog) -> None:
    caplog.set_level(logging.INFO)
    secret = "registered-secret-0042"
    register_secret(secret)
    logger = get_logger("saucy.tests.redaction")

    logger.warning("request to /api/%s failed", secret)
    emit_event(logger, "provider.call", url=f"https://host/{secret}/x")

    assert secret not in caplog.text
    assert caplog.text.count(redact(secret)) == 2


def test_traceback_text_is_masked(caplog) -> None:
    caplog.set_level(logging.INFO)
    secret = "traceback-secret-0042"
    register_secret(secret)
    logger = get_logger("saucy.tests.redaction")

    try:
        raise ConnectionError(f"GET /v1/{secret}/gifs failed")
    except ConnectionError:
        logger.exception("lookup failed")

    record = caplog.records[-1]
    assert secret not in (record.exc_text or "")
    assert redact(secret) in record.exc_text


def test_short_values_are_not_registered(caplog) -> None:
    caplog.set_level(logging.INFO)
    register_secret("k")
    logger = get_logger("saucy.tests.redaction")

    logger.info("keep the k here")

    assert "keep the k here" in caplog.text


def test_resolved_key_is_masked_afterwards(caplog, tmp_path) -> None:
    caplog.set_level(logging.INFO)
    key = "env-provided-key-0123456789"
    resolver = CredentialResolver(local_store=LocalKeyStore(tmp_path / "ls.json"), environment=lambda: key)
    resolver.resolve(Anonymous())

    get_logger("saucy.tests.redaction").warning("provider echoed %s", key)

    assert key not in caplog.text
