from __future__ import annotations

import pytest

from content.repository import ContentRepository, default_repository


@pytest.fixture(scope="session")
def content() -> ContentRepository:
    return default_repository()
