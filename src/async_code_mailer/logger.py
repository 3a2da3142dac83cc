"""Logging utilities for the code mailer.

Handlers, level and format are configured once by the entry point through
``logging.basicConfig()`` (see :func:`async_code_mailer.server.configure_logging`);
modules only ask for named loggers.

Example:
    Typical usage in a module::

        from async_code_mailer.logger import get_logger

        logger = get_logger("CodeMailer.worker")
        logger.info("Cycle completed")
"""

import logging


def get_logger(name: str = "CodeMailer") -> logging.Logger:
    """Return the standard library logger bound to ``name``.

    No handlers or formatters are attached here.
    """
    return logging.getLogger(name)
