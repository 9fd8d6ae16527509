"""Shared fixtures for perflimits tests."""

from __future__ import annotations

import pytest

from perflimits import reset_log_cache


@pytest.fixture(autouse=True)
def _clean_log_cache():
    reset_log_cache()
    yield
    reset_log_cache()
