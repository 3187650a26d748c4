import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from .config import AppSettings, load_settings
from .errors import VistaError
from .executor import ToolExecutor
from .image_jobs import ImageJobClient
from .intent import IntentResolver
from .library import LibraryClient
from .llm import PlannerClient
from .orchestrator import ConversationOrchestrator
from .schemas import (
    RATIOS,
    GenerateAiArgs,
    GenerateRequest,
    RefineImageArgs,
    RefineRequest,
    SessionCommand,
    ToolCall,
    TurnRequest,
)
from .sessions import SessionStore
from .transcribe import ALLOWED_AUDIO_TYPES, TranscriptionClient
from .weather import WeatherClient

logger = logging.getLogger("uvicorn.error")

MAX_AUDIO_BYTES = 25 * 1024 * 1024
TOOL_ERROR_STATUS = {"argument_error": 400, "upstream_error": 502, "timeout_error": 504}


def get_settings(request: Request) -> AppSettings:
    return request.app.state.settings


def get_library(request: Request) -> LibraryClient:
    return request.app.state.library


def get_image_jobs(request: Request) -> ImageJobClient:
    return request.app.state.image_jobs


def get_weather(request: Request) -> WeatherClient:
    return request.app.state.weather


def get_transcriber(request: Request) -> TranscriptionClient:
    return request.app.state.transcriber


def get_executor(request: Request) -> ToolExecutor:
    return request.app.state.executor


def get_orchestrator(request: Request) -> ConversationOrchestrator:
    return request.app.state.orchestrator


def get_sessions(request: Request) -> SessionStore:
    return request.app.state.sessions


def _validation_detail(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc') or ())}: {err.get('msg')}" for err in exc.errors()
    )


def require_query(q: Optional[str]) -> str:
    cleaned = (q or "").strip()
    if not cleaned:
        raise HTTPException(status_code=400, detail="Missing q parameter")
    return cleaned


router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
async def index():
    return "VISTA backend is running."


@router.get("/settings")
async def get_settings_route(settings: AppSettings = Depends(get_settings)):
    return {"settings": settings.to_safe_dict()}


@router.get("/api/unsplash")
async def unsplash_proxy(q: Optional[str] = None, library: LibraryClient = Depends(get_library)):
    raw = await library.search_unsplash(require_query(q))
    if raw.get("error"):
        raise HTTPException(status_code=502, detail=raw["error"])
    return {"images": raw.get("images") or []}


@router.get("/api/pexels")
async def pexels_proxy(q: Optional[str] = None, library: LibraryClient = Depends(get_library)):
    raw = await library.search_pexels(require_query(q))
    if raw.get("error"):
        raise HTTPException(status_code=502, detail=raw["error"])
    return {"images": raw.get("images") or []}


@router.get("/api/search")
async def search_images(
    q: Optional[str] = None,
    source: Optional[str] = None,
    ratio: Optional[str] = None,
    library: LibraryClient = Depends(get_library),
):
    query = require_query(q)
    if ratio and ratio not in RATIOS:
        raise HTTPException(status_code=400, detail=f"ratio must be one of {', '.join(RATIOS)}")
    raw = await library.search(query, source=(source or "").lower(), ratio=ratio)
    if raw.get("error"):
        raise HTTPException(status_code=502, detail=raw["error"])
    return {"images": raw.get("images") or [], "source": raw.get("source")}


@router.post("/api/generate")
async def generate_images(payload: GenerateRequest, image_jobs: ImageJobClient = Depends(get_image_jobs)):
    try:
        args = GenerateAiArgs(**payload.model_dump())
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=_validation_detail(exc))
    return await image_jobs.generate_images(args.prompt, count=args.count, aspect_ratio=args.aspect_ratio)


@router.post("/api/refine")
async def refine_image(payload: RefineRequest, image_jobs: ImageJobClient = Depends(get_image_jobs)):
    try:
        args = RefineImageArgs(**payload.model_dump())
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=_validation_detail(exc))
    return await image_jobs.refine_image(args.prompt, args.input_image)


@router.get("/api/weather")
async def current_weather(
    city: Optional[str] = None,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    weather: WeatherClient = Depends(get_weather),
):
    place: Dict[str, Any] = {}
    if city and city.strip():
        place = await weather.geocode(city.strip())
        lat, lon = place["lat"], place["lon"]
    if lat is None or lon is None:
        raise HTTPException(status_code=400, detail="Provide city or lat and lon.")
    data = await weather.current_weather(lat, lon)
    if place:
        data["city"] = place["name"]
        data["country"] = place["country"]
    return data


@router.get("/api/weather/history")
async def weather_history(
    city: Optional[str] = None,
    day: Optional[str] = Query(None, alias="date"),
    executor: ToolExecutor = Depends(get_executor),
):
    tool = await executor.execute(
        ToolCall(name="get_weather_history", arguments={"city": city or "", "date": day or ""})
    )
    if tool.error is not None:
        raise HTTPException(status_code=TOOL_ERROR_STATUS[tool.error.kind], detail=tool.error.message)
    return tool.result


@router.post("/api/transcribe")
async def transcribe_audio(
    file: UploadFile = File(...),
    language: Optional[str] = Form(None),
    transcriber: TranscriptionClient = Depends(get_transcriber),
):
    if file.content_type not in ALLOWED_AUDIO_TYPES:
        raise HTTPException(status_code=400, detail="Unsupported audio type.")
    data = await file.read()
    if len(data) > MAX_AUDIO_BYTES:
        raise HTTPException(status_code=400, detail="Audio file too large (>25 MB).")
    return await transcriber.transcribe(data, file.filename or "audio", file.content_type, language=language)


@router.post("/api/agent")
async def agent_turn(
    payload: TurnRequest,
    settings: AppSettings = Depends(get_settings),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
    sessions: SessionStore = Depends(get_sessions),
):
    if payload.session_id and sessions.get(payload.session_id) is None:
        raise HTTPException(status_code=404, detail="Session not found")
    try:
        response = await asyncio.wait_for(orchestrator.run_turn(payload), timeout=settings.turn_timeout_s)
    except asyncio.TimeoutError:
        raise HTTPException(status_code=504, detail="Turn timed out")
    if payload.session_id:
        for tool in response.tools:
            if tool.name == "set_view" and tool.ok:
                sessions.push(payload.session_id, {"type": "set_view", "view": tool.result["view"]})
    return response.model_dump()


@router.post("/api/sessions")
async def create_session(sessions: SessionStore = Depends(get_sessions)):
    return {"session": sessions.create().to_dict()}


@router.get("/api/sessions/{session_id}")
async def get_session(session_id: str, sessions: SessionStore = Depends(get_sessions)):
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return {"session": session.to_dict()}


@router.post("/api/sessions/{session_id}/commands")
async def push_command(
    session_id: str,
    command: SessionCommand = Body(...),
    sessions: SessionStore = Depends(get_sessions),
):
    entry = sessions.push(session_id, command.model_dump())
    if entry is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return {"ok": True, "command": entry}


@router.get("/api/sessions/{session_id}/commands")
async def drain_commands(session_id: str, sessions: SessionStore = Depends(get_sessions)):
    commands = sessions.drain(session_id)
    if commands is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return {"commands": commands}


@router.delete("/api/sessions/{session_id}")
async def delete_session(session_id: str, sessions: SessionStore = Depends(get_sessions)):
    if not sessions.delete(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"ok": True}


async def vista_error_handler(request: Request, exc: VistaError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.kind, "message": exc.message})


def create_app(
    settings: AppSettings,
    *,
    planner: Optional[PlannerClient] = None,
    library: Optional[LibraryClient] = None,
    image_jobs: Optional[ImageJobClient] = None,
    weather: Optional[WeatherClient] = None,
    transcriber: Optional[TranscriptionClient] = None,
    sessions: Optional[SessionStore] = None,
    clock: Optional[Callable[[], date]] = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            await app.state.planner.close()
            await app.state.library.close()
            await app.state.image_jobs.close()
            await app.state.weather.close()
            await app.state.transcriber.close()

    app = FastAPI(title="VISTA Backend", lifespan=lifespan)
    app.state.settings = settings
    app.state.planner = planner or PlannerClient(
        settings.openai_api_key, base_url=settings.openai_base_url, model=settings.planner_model
    )
    app.state.library = library or LibraryClient(
        settings.unsplash_key,
        settings.pexels_key,
        unsplash_base_url=settings.unsplash_base_url,
        pexels_base_url=settings.pexels_base_url,
        per_page=settings.search_per_page,
    )
    app.state.image_jobs = image_jobs or ImageJobClient(
        settings.replicate_api_token,
        base_url=settings.replicate_base_url,
        generate_model=settings.generate_model,
        refine_model=settings.refine_model,
        poll_interval_s=settings.poll_interval_s,
        poll_timeout_s=settings.poll_timeout_s,
    )
    app.state.weather = weather or WeatherClient(
        geocoding_base_url=settings.geocoding_base_url,
        archive_base_url=settings.archive_base_url,
        forecast_base_url=settings.forecast_base_url,
    )
    app.state.transcriber = transcriber or TranscriptionClient(
        settings.openai_api_key, base_url=settings.openai_base_url, model=settings.transcribe_model
    )
    app.state.sessions = sessions or SessionStore()
    app.state.executor = ToolExecutor(app.state.library, app.state.image_jobs, app.state.weather)
    app.state.orchestrator = ConversationOrchestrator(
        IntentResolver(app.state.planner, clock=clock),
        app.state.executor,
        app.state.planner,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(VistaError, vista_error_handler)
    app.include_router(router)
    return app


app = create_app(load_settings())


if __name__ == "__main__":
    import os
    import uvicorn

    settings = app.state.settings
    reload_enabled = os.getenv("VISTA_RELOAD", "").lower() in ("1", "true", "yes", "on")
    try:
        uvicorn.run(
            "vista.main:app",
            host=settings.host,
            port=settings.port,
            reload=reload_enabled,
        )
    except KeyboardInterrupt:
        pass
