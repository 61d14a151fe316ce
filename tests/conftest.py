from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from todo_api.main import create_app
from todo_api.settings import get_settings


@pytest.fixture
def settings(tmp_path):
    # Memory backend and an empty static dir keep tests free of external services
    return replace(get_settings(), persistence_backend="memory", static_dir=str(tmp_path / "no-static"))


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    # Entering the context runs the lifespan, which opens the repository
    with TestClient(app) as c:
        yield c
