import pytest

from tests.fakes import (
    FakeImageJobs,
    FakeLibraryClient,
    FakeWeatherClient,
    timeout_error,
    upstream_error,
)
from vista.errors import ConfigurationError, UnknownToolError
from vista.executor import ToolExecutor
from vista.schemas import ToolCall
from vista.tools import tool_names


def make_executor(library=None, image_jobs=None, weather=None) -> ToolExecutor:
    return ToolExecutor(library or FakeLibraryClient(), image_jobs or FakeImageJobs(), weather or FakeWeatherClient())


def test_every_registered_tool_has_a_handler():
    assert sorted(make_executor().handlers) == sorted(tool_names())


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "call",
    [
        ToolCall(name="search_library", arguments={"query": "mountains"}),
        ToolCall(name="generate_ai", arguments={"prompt": "a fox", "count": 2}),
        ToolCall(name="refine_image", arguments={"prompt": "make it blue", "input_image": "https://img.test/1.jpg"}),
        ToolCall(name="set_view", arguments={"view": "gallery"}),
        ToolCall(name="refresh_weather", arguments={}),
        ToolCall(name="get_weather_history", arguments={"city": "Paris", "date": "2024-03-09"}),
        ToolCall(name="search_library", arguments={}),
        ToolCall(name="generate_ai", arguments={"prompt": "a fox", "count": 9}),
        ToolCall(name="set_view", arguments={"view": "settings"}),
        ToolCall(name="get_weather_history", arguments={"city": "Atlantis", "date": "2024-03-09"}),
    ],
)
async def test_result_and_error_are_exclusive(call):
    tool = await make_executor().execute(call)
    assert (tool.result is None) != (tool.error is None)
    if tool.error is not None:
        assert tool.error.message


@pytest.mark.asyncio
async def test_search_defaults_unknown_source_to_unsplash():
    library = FakeLibraryClient()
    tool = await make_executor(library=library).execute(
        ToolCall(name="search_library", arguments={"query": "cats", "source": "flickr"})
    )
    assert tool.ok
    assert tool.args == {"query": "cats", "source": "unsplash", "ratio": "1:1"}
    assert library.calls == [{"query": "cats", "source": "unsplash", "ratio": "1:1"}]
    assert tool.result == {"images": library.images, "source": "unsplash"}


@pytest.mark.asyncio
async def test_search_passes_pexels_and_ratio():
    library = FakeLibraryClient()
    tool = await make_executor(library=library).execute(
        ToolCall(name="search_library", arguments={"query": "cats", "source": "Pexels", "ratio": "9:16"})
    )
    assert tool.result["source"] == "pexels"
    assert library.calls[0]["ratio"] == "9:16"


@pytest.mark.asyncio
async def test_search_adapter_error_becomes_upstream_error():
    tool = await make_executor(library=FakeLibraryClient(error="OAuth error: The access token is invalid")).execute(
        ToolCall(name="search_library", arguments={"query": "cats"})
    )
    assert tool.result is None
    assert tool.error.kind == "upstream_error"
    assert tool.error.message == "OAuth error: The access token is invalid"


@pytest.mark.asyncio
async def test_missing_required_argument_fails_without_dispatch():
    library = FakeLibraryClient()
    tool = await make_executor(library=library).execute(ToolCall(name="search_library", arguments={"ratio": "1:1"}))
    assert tool.error.kind == "argument_error"
    assert "query" in tool.error.message
    assert library.calls == []


@pytest.mark.asyncio
async def test_invalid_ratio_is_an_argument_error():
    tool = await make_executor().execute(
        ToolCall(name="generate_ai", arguments={"prompt": "a fox", "aspect_ratio": "2:1"})
    )
    assert tool.error.kind == "argument_error"


@pytest.mark.asyncio
async def test_generation_errors_surface_verbatim():
    tool = await make_executor(image_jobs=FakeImageJobs(error=upstream_error("NSFW content detected"))).execute(
        ToolCall(name="generate_ai", arguments={"prompt": "a fox"})
    )
    assert tool.error.kind == "upstream_error"
    assert tool.error.message == "NSFW content detected"


@pytest.mark.asyncio
async def test_refinement_timeout_is_distinct():
    tool = await make_executor(image_jobs=FakeImageJobs(error=timeout_error())).execute(
        ToolCall(name="refine_image", arguments={"prompt": "sharpen", "input_image": "https://img.test/1.jpg"})
    )
    assert tool.error.kind == "timeout_error"


@pytest.mark.asyncio
async def test_set_view_is_idempotent():
    executor = make_executor()
    call = ToolCall(name="set_view", arguments={"view": "weather"})
    first = await executor.execute(call)
    second = await executor.execute(call)
    assert first == second
    assert first.result == {"view": "weather"}


@pytest.mark.asyncio
async def test_weather_history_geocodes_then_fetches():
    weather = FakeWeatherClient()
    tool = await make_executor(weather=weather).execute(
        ToolCall(name="get_weather_history", arguments={"city": "paris", "date": "2024-03-09"})
    )
    assert [c["kind"] for c in weather.calls] == ["geocode", "history"]
    assert tool.result["city"] == "Paris"
    assert tool.result["date"] == "2024-03-09"
    assert tool.result["temperature_max"] == 14.2


@pytest.mark.asyncio
async def test_weather_history_rejects_impossible_date():
    weather = FakeWeatherClient()
    tool = await make_executor(weather=weather).execute(
        ToolCall(name="get_weather_history", arguments={"city": "Paris", "date": "2024-02-31"})
    )
    assert tool.error.kind == "argument_error"
    assert weather.calls == []


@pytest.mark.asyncio
async def test_unknown_tool_raises():
    with pytest.raises(UnknownToolError):
        await make_executor().execute(ToolCall(name="launch_rockets", arguments={}))


@pytest.mark.asyncio
async def test_configuration_error_propagates():
    class UnconfiguredLibrary(FakeLibraryClient):
        async def search(self, query, source="unsplash", ratio=None):
            raise ConfigurationError("unsplash_key")

    with pytest.raises(ConfigurationError):
        await make_executor(library=UnconfiguredLibrary()).execute(
            ToolCall(name="search_library", arguments={"query": "cats"})
        )
