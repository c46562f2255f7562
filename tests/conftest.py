import logging

import pytest


@pytest.fixture
def restore_logging():
    """Undo ``configure_logging`` so later tests keep pytest's own handlers."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    httpx_level = logging.getLogger("httpx").level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("httpx").setLevel(httpx_level)
