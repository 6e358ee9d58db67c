from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest

from sqlbind.settings import reset_defaults, settings_scope

here = Path(__file__).parent
root_path = here.parent


@pytest.fixture(autouse=True)
def isolated_settings() -> Generator[None, None, None]:
    """Give every test its own settings frame and pristine process defaults."""
    with settings_scope():
        yield
    reset_defaults()
