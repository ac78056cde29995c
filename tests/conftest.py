from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path

import pytest


def create_test_data(fmt: str, start: datetime, days: int, extension: str = "") -> list[Path]:
    """One path per day, named by ``fmt`` + ``extension``, going backwards from ``start``."""
    return [Path((start - timedelta(days=offset)).strftime(fmt) + extension) for offset in range(days)]


@pytest.fixture
def make_test_data() -> Callable[..., list[Path]]:
    return create_test_data


@pytest.fixture
def daily_backups() -> list[Path]:
    """400 daily backups back from 2015-01-01, plus 30 '.log' files for the most recent 30 days."""
    start = datetime(2015, 1, 1)
    return create_test_data("%Y-%m-%d", start, 400) + create_test_data("%Y-%m-%d", start, 30, ".log")
