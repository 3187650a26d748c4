from typing import Any, Dict, Optional


class VistaError(Exception):
    """Base error; `kind` is the stable tag surfaced in tool results and HTTP bodies."""

    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class ArgumentError(VistaError):
    kind = "argument_error"
    status_code = 400


class UpstreamError(VistaError):
    kind = "upstream_error"
    status_code = 502


class JobTimeoutError(VistaError):
    kind = "timeout_error"
    status_code = 504

    def __init__(self, job_id: str, timeout_s: float):
        super().__init__(
            f"Job {job_id} did not finish within {timeout_s:g}s",
            detail={"job_id": job_id, "timeout_s": timeout_s},
        )
        self.job_id = job_id
        self.timeout_s = timeout_s


class UnknownToolError(VistaError):
    kind = "unknown_tool"

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}", detail={"tool": name})
        self.name = name


class ConfigurationError(VistaError):
    kind = "configuration_error"

    def __init__(self, setting: str):
        super().__init__(f"Missing required setting: {setting}", detail={"setting": setting})
        self.setting = setting
