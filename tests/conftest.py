"""
Shared pytest fixtures.
"""

import pytest

from backend.formlogic.config import set_config
from backend.formlogic.runtime import clear_caches


@pytest.fixture(autouse=True)
def reset_process_state():
    """Restore the default config and empty the caches after every test."""
    yield
    set_config(None)
    clear_caches()
