import pytest

from cac_web.domain.models import AuthUser
from cac_web.tests.fakes import InMemoryAnalysisRepository


@pytest.fixture
def user() -> AuthUser:
    return AuthUser(id="user-1", email="analyst@example.com")


@pytest.fixture
def other_user() -> AuthUser:
    return AuthUser(id="user-2", email="someone@example.com")


@pytest.fixture
def repo() -> InMemoryAnalysisRepository:
    return InMemoryAnalysisRepository()
