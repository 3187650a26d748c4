from datetime import date

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from tests.fakes import (
    FakeImageJobs,
    FakeLibraryClient,
    FakePlanner,
    FakeTranscriber,
    FakeWeatherClient,
)
from vista.config import AppSettings
from vista.executor import ToolExecutor
from vista.intent import IntentResolver
from vista.main import create_app
from vista.orchestrator import ConversationOrchestrator

TODAY = date(2024, 3, 10)


def make_settings(**overrides) -> AppSettings:
    settings = AppSettings(
        unsplash_key=None,
        pexels_key=None,
        replicate_api_token=None,
        openai_api_key=None,
        poll_interval_s=0.0,
        poll_timeout_s=1.0,
        turn_timeout_s=5.0,
    )
    if overrides:
        settings = settings.model_copy(update=overrides)
    return settings


def make_orchestrator(
    planner: FakePlanner | None = None,
    library: FakeLibraryClient | None = None,
    image_jobs: FakeImageJobs | None = None,
    weather: FakeWeatherClient | None = None,
) -> ConversationOrchestrator:
    planner = planner or FakePlanner()
    executor = ToolExecutor(library or FakeLibraryClient(), image_jobs or FakeImageJobs(), weather or FakeWeatherClient())
    return ConversationOrchestrator(IntentResolver(planner, clock=lambda: TODAY), executor, planner)


@pytest.fixture
def app_factory():
    def _factory(
        *,
        planner: FakePlanner | None = None,
        library: FakeLibraryClient | None = None,
        image_jobs: FakeImageJobs | None = None,
        weather: FakeWeatherClient | None = None,
        transcriber: FakeTranscriber | None = None,
        **settings_overrides,
    ):
        settings = make_settings(**settings_overrides)
        app = create_app(
            settings,
            planner=planner or FakePlanner(),
            library=library or FakeLibraryClient(),
            image_jobs=image_jobs or FakeImageJobs(),
            weather=weather or FakeWeatherClient(),
            transcriber=transcriber or FakeTranscriber(),
            clock=lambda: TODAY,
        )
        return app

    return _factory


@pytest.fixture
async def client(app_factory):
    app = app_factory()
    async with LifespanManager(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as http_client:
            http_client.app = app  # type: ignore[attr-defined]
            yield http_client
