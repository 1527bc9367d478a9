"""
Pytest configuration and shared fixtures for testing.
"""
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List

# Add project root to path so exam_cat and scripts/ are importable without install
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import pytest  # noqa: E402

from exam_cat.core.cat.engine import CATEngine, CATSettings  # noqa: E402


@dataclass
class MockQuestion:
    """Mock pool question for testing."""

    id: str
    difficulty: float


@pytest.fixture
def default_settings() -> CATSettings:
    """CATSettings with the documented defaults (independent of environment)."""
    return CATSettings()


@pytest.fixture
def engine(default_settings: CATSettings) -> CATEngine:
    """CATEngine whose fallback settings are the documented defaults."""
    return CATEngine(default_settings=default_settings)


@pytest.fixture
def question_pool() -> List[MockQuestion]:
    """Pool spanning the difficulty scale from very easy to very hard."""
    return [
        MockQuestion(id=f"pool_{i}", difficulty=d)
        for i, d in enumerate([0.1, 0.25, 0.4, 0.5, 0.6, 0.75, 0.9])
    ]
