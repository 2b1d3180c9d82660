"""Tests for logging setup and credential masking."""

import logging

from rich.logging import RichHandler

from toolbridge.logging_config import (
    SecretMaskingFormatter,
    mask_secrets,
    setup_logging,
)


def test_masks_bearer_tokens():
    assert mask_secrets("Authorization: Bearer abc.def-123") == "Authorization: Bearer ****"


def test_masks_form_fields():
    text = "grant_type=client_credentials&client_secret=hunter2&client_id=c1"
    assert mask_secrets(text) == "grant_type=client_credentials&client_secret=****&client_id=c1"


def test_masks_json_and_repr_values():
    assert mask_secrets('{"access_token": "tok-1", "expires_in": 3600}') == (
        '{"access_token": "****", "expires_in": 3600}'
    )
    assert mask_secrets("{'refresh_token': 'r1'}") == "{'refresh_token': '****'}"


def test_plain_text_untouched():
    assert mask_secrets("Registered remote tool get_weather") == "Registered remote tool get_weather"


def test_formatter_masks_record():
    formatter = SecretMaskingFormatter("%(message)s")
    record = logging.LogRecord(
        "toolbridge", logging.INFO, __file__, 1, "sending %s", ("Bearer tok-1",), None,
    )
    assert formatter.format(record) == "sending Bearer ****"


def test_setup_logging_console_handler():
    logger = setup_logging(level="warning")

    assert logger.name == "toolbridge"
    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], RichHandler)


def test_setup_logging_quiet_with_file(tmp_path):
    log_file = tmp_path / "logs" / "toolbridge.log"
    logger = setup_logging(level=logging.DEBUG, log_file=log_file, quiet=True)

    logger.debug("client_secret=hunter2")
    for handler in logger.handlers:
        handler.flush()

    assert [type(h) for h in logger.handlers] == [logging.FileHandler]
    assert "client_secret=****" in log_file.read_text()
    assert "hunter2" not in log_file.read_text()

    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()


def test_unknown_level_falls_back_to_info():
    logger = setup_logging(level="chatty", quiet=True)
    assert logger.level == logging.INFO
