from __future__ import annotations

import pytest

from clipnote.logging_utils import reset_log_once


@pytest.fixture(autouse=True)
def _fresh_log_once():
    reset_log_once()
    yield
    reset_log_once()
