"""Tests for logging setup and secret redaction."""

import logging

from skillsync.core.logging import redact_secrets, setup_logging


def test_redacts_credential_keys():
    event = {"event": "broker.token_minted", "token": "ghs_abc", "installation_id": 77}
    out = redact_secrets(None, "info", event)
    assert out["token"] == "***"
    assert out["installation_id"] == 77


def test_arguments_override_environment(monkeypatch):
    monkeypatch.setenv("SKILLSYNC_LOG_LEVEL", "ERROR")
    setup_logging(level="debug", fmt="json")
    assert logging.getLogger("skillsync").level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.DEBUG


def test_environment_level_quiets_http_clients(monkeypatch):
    monkeypatch.setenv("SKILLSYNC_LOG_LEVEL", "info")
    setup_logging()
    assert logging.getLogger("skillsync").level == logging.INFO
    assert logging.getLogger("httpx").level == logging.WARNING
