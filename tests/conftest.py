"""Shared fixtures."""

import pytest

from cnpj_pull.models.database import init_db
from cnpj_pull.registry import ResolutionCache


@pytest.fixture
def session_factory(tmp_path):
    return init_db(f"sqlite:///{tmp_path / 'cache.db'}")


@pytest.fixture
def cache(session_factory):
    return ResolutionCache(session_factory)
