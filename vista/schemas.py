from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


Ratio = Literal["1:1", "4:3", "16:9", "3:4", "9:16"]
Source = Literal["unsplash", "pexels"]
View = Literal["weather", "gallery"]
JobStatus = Literal["starting", "processing", "succeeded", "failed", "canceled"]
ErrorKind = Literal["argument_error", "upstream_error", "timeout_error"]

RATIOS = ("1:1", "4:3", "16:9", "3:4", "9:16")
SOURCES = ("unsplash", "pexels")
VIEWS = ("weather", "gallery")
DEFAULT_RATIO = "1:1"
DEFAULT_SOURCE = "unsplash"
TERMINAL_JOB_STATUSES = {"succeeded", "failed", "canceled"}


class ToolSpec(BaseModel):
    name: str
    description: str
    parameter_schema: Dict[str, Any]

    model_config = {"frozen": True}


class ToolCall(BaseModel):
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    call_id: Optional[str] = None


class ToolError(BaseModel):
    kind: ErrorKind
    message: str

    model_config = {"frozen": True}


class ToolResult(BaseModel):
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[Any] = None
    error: Optional[ToolError] = None

    model_config = {"frozen": True}

    @property
    def ok(self) -> bool:
        return self.error is None


# Per-tool argument records. The executor keys these by tool name.


class SearchLibraryArgs(BaseModel):
    query: str = Field(min_length=1)
    source: Source = DEFAULT_SOURCE
    ratio: Ratio = DEFAULT_RATIO

    @field_validator("query", mode="before")
    @classmethod
    def _strip_query(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("source", mode="before")
    @classmethod
    def _default_source(cls, value: Any) -> str:
        cleaned = str(value or "").strip().lower()
        return cleaned if cleaned in SOURCES else DEFAULT_SOURCE

    @field_validator("ratio", mode="before")
    @classmethod
    def _blank_ratio(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_RATIO
        return value


class GenerateAiArgs(BaseModel):
    prompt: str = Field(min_length=1)
    count: int = Field(default=1, ge=1, le=5)
    aspect_ratio: Ratio = DEFAULT_RATIO

    @field_validator("prompt", mode="before")
    @classmethod
    def _strip_prompt(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("aspect_ratio", mode="before")
    @classmethod
    def _blank_ratio(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_RATIO
        return value


class RefineImageArgs(BaseModel):
    prompt: str = Field(min_length=1)
    input_image: str = Field(min_length=1)


class SetViewArgs(BaseModel):
    view: View


class RefreshWeatherArgs(BaseModel):
    pass


class WeatherHistoryArgs(BaseModel):
    city: str = Field(min_length=1)
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")

    @field_validator("city", mode="before")
    @classmethod
    def _strip_city(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class AsyncJob(BaseModel):
    id: str
    status: JobStatus = "starting"
    output: Optional[Any] = None
    error: Optional[Any] = None
    urls: Dict[str, str] = Field(default_factory=dict)

    model_config = {"extra": "allow"}

    @property
    def terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES


class PlannerResponse(BaseModel):
    id: Optional[str] = None
    text: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)


class TurnRequest(BaseModel):
    message: str = ""
    summary: Optional[str] = None
    state: Dict[str, Any] = Field(default_factory=dict)
    session_id: Optional[str] = None

    @field_validator("state", mode="before")
    @classmethod
    def _null_state(cls, value: Any) -> Any:
        return value if value is not None else {}


class TurnResponse(BaseModel):
    tools: List[ToolResult] = Field(default_factory=list)
    reply: str


class GenerateRequest(BaseModel):
    prompt: str
    count: int = 1
    aspect_ratio: Optional[str] = None


class RefineRequest(BaseModel):
    prompt: str
    input_image: str


class SessionCommand(BaseModel):
    type: str
    payload: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "allow"}
