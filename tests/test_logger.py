import logging

from async_code_mailer import server
from async_code_mailer.logger import get_logger


def test_get_logger_reuses_existing_logger():
    logger = get_logger("TestLogger")
    handler_count = len(logger.handlers)

    same_logger = get_logger("TestLogger")
    assert logger is same_logger
    assert len(same_logger.handlers) == handler_count


def test_default_logger_name():
    assert get_logger().name == "CodeMailer"


def test_configure_logging_forwards_level(monkeypatch):
    calls = []
    monkeypatch.setattr(server.logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    server.configure_logging("warning")
    server.configure_logging("not-a-level")

    assert calls[0]["level"] == logging.WARNING
    assert calls[0]["force"] is True
    assert calls[1]["level"] == logging.INFO
