import logging

from opencode_remote.logging_utils import (
    PACKAGE_LOGGER,
    ServerContextFilter,
    configure_logging,
    get_server_context,
    set_server_context,
)


def _record() -> logging.LogRecord:
    return logging.LogRecord("opencode_remote.api", logging.INFO, __file__, 1, "hi", None, None)


def test_filter_defaults_to_dash() -> None:
    set_server_context(None)
    record = _record()
    assert ServerContextFilter().filter(record) is True
    assert record.server == "-"


def test_filter_uses_context() -> None:
    set_server_context("http://10.0.0.5:4096")
    try:
        record = _record()
        ServerContextFilter().filter(record)
        assert record.server == "http://10.0.0.5:4096"
        assert get_server_context() == "http://10.0.0.5:4096"
    finally:
        set_server_context(None)


def test_configure_logging_installs_one_handler() -> None:
    logger = logging.getLogger(PACKAGE_LOGGER)
    before = list(logger.handlers)
    configure_logging("INFO")
    configure_logging("DEBUG")
    added = [handler for handler in logger.handlers if handler not in before]
    assert len(added) == 1
    assert logger.level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING
