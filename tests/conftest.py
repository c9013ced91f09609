#tests\conftest.py

"""Pytest configuration and fixtures."""

import zipfile

import pytest

from cf_provider.config import ProviderSettings
from cf_provider.core.context import OperationContext
from cf_provider.core.events import MultiEventEmitter, RecordingEventEmitter
from cf_provider.core.models import ApplicationState, LifecycleType
from cf_provider.infrastructure.memory.controller import InMemoryCloudController
from cf_provider.provider import Provider
from cf_provider.session import Session


class FakeClock:
    """Monotonic clock that advances a fixed step per reading."""

    def __init__(self, step: float = 1.0):
        self.now = 0.0
        self.step = step

    def __call__(self) -> float:
        current = self.now
        self.now += self.step
        return current


@pytest.fixture
def settings():
    """Settings with no waiting between polls."""
    return ProviderSettings(
        _env_file=None,
        api_url="https://api.example.com",
        operation_timeout=5,
        staging_poll_interval=0,
        staging_poll_delay=0,
        deployment_poll_interval=0,
        deployment_poll_delay=0,
        job_poll_interval=0,
        job_poll_delay=0,
        process_poll_interval=0,
        process_poll_delay=0,
        start_poll_interval=0,
        start_poll_delay=0,
    )


@pytest.fixture
def controller():
    return InMemoryCloudController()


@pytest.fixture
def recorder():
    return RecordingEventEmitter()


@pytest.fixture
def session(settings, controller, recorder):
    return Session(settings, controller, MultiEventEmitter([recorder]))


@pytest.fixture
def provider(session):
    return Provider(session)


@pytest.fixture
def ctx():
    return OperationContext(timeout=5)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def archive(tmp_path):
    """A zipped application source."""
    path = tmp_path / "app.zip"
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("index.html", "<h1>hello</h1>")
    return str(path)


@pytest.fixture
def buildpack_app(controller):
    return controller.add_application(
        "web-app",
        lifecycle_type=LifecycleType.BUILDPACK,
        state=ApplicationState.STOPPED,
    )


@pytest.fixture
def docker_app(controller):
    return controller.add_application(
        "docker-app",
        lifecycle_type=LifecycleType.DOCKER,
        state=ApplicationState.STOPPED,
    )
