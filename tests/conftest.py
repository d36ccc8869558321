import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from credkeep import logging_setup  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_logging():
    """Undo any credkeep log handlers a test attached."""
    try:
        yield
    finally:
        logging_setup.reset_logging()
