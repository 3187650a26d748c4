import pytest
import respx
from httpx import Response

from vista.errors import ArgumentError, ConfigurationError, UpstreamError
from vista.transcribe import TranscriptionClient

TRANSCRIBE_URL = "https://api.openai.com/v1/audio/transcriptions"


@pytest.mark.asyncio
async def test_transcribe_posts_multipart_form():
    client = TranscriptionClient("sk-test")
    captured = {}
    try:
        with respx.mock(assert_all_called=True) as respx_mock:
            def handler(request):
                captured["body"] = request.read()
                captured["headers"] = request.headers
                return Response(200, json={"text": "  show me mountains \n"})

            respx_mock.post(TRANSCRIBE_URL).mock(side_effect=handler)
            resp = await client.transcribe(b"RIFF....", "clip.wav", "audio/wav", language="en")
            assert resp == {"text": "show me mountains"}
            assert captured["headers"]["Authorization"] == "Bearer sk-test"
            assert captured["headers"]["Content-Type"].startswith("multipart/form-data")
            assert b'name="model"' in captured["body"]
            assert b"whisper-1" in captured["body"]
            assert b'filename="clip.wav"' in captured["body"]
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_empty_audio_is_rejected():
    client = TranscriptionClient("sk-test")
    try:
        with pytest.raises(ArgumentError):
            await client.transcribe(b"", "clip.wav")
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_provider_error_is_upstream_error():
    client = TranscriptionClient("sk-test")
    try:
        with respx.mock(assert_all_called=True) as respx_mock:
            respx_mock.post(TRANSCRIBE_URL).mock(
                return_value=Response(400, json={"error": {"message": "Invalid file format."}})
            )
            with pytest.raises(UpstreamError, match="Invalid file format."):
                await client.transcribe(b"data", "clip.txt", "text/plain")
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_missing_key_is_a_configuration_error():
    client = TranscriptionClient(None)
    try:
        with pytest.raises(ConfigurationError):
            await client.transcribe(b"data", "clip.wav")
    finally:
        await client.close()
