"""
Roster kernel test configuration.

Date-dependent rules (birth date range, age) are evaluated against a fixed day.
"""

from datetime import date

import pytest


@pytest.fixture
def today() -> date:
    return date(2026, 6, 15)
