"""Shared fixtures for check_jitter tests."""

import logging

import pytest


@pytest.fixture
def restore_root_logger():
    """Undo configure_logging() so later tests keep pytest's log handlers."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level

    yield root

    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
