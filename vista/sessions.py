import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class Session:
    session_id: str
    created_at: str
    commands: Deque[Dict[str, Any]] = field(default_factory=deque)

    def to_dict(self) -> Dict[str, Any]:
        return {"session_id": self.session_id, "created_at": self.created_at, "pending": len(self.commands)}


class SessionStore:
    """Process-lifetime sessions, each with a FIFO of commands for the front-end to drain."""

    def __init__(self, max_pending: int = 100, max_sessions: int = 1000):
        self.max_pending = max_pending
        self.max_sessions = max_sessions
        self.sessions: Dict[str, Session] = {}

    def create(self) -> Session:
        session = Session(session_id=uuid.uuid4().hex, created_at=utc_now())
        self.sessions[session.session_id] = session
        # Oldest sessions are evicted past the cap.
        while len(self.sessions) > self.max_sessions:
            self.sessions.pop(next(iter(self.sessions)))
        return session

    def get(self, session_id: str) -> Optional[Session]:
        return self.sessions.get(session_id)

    def push(self, session_id: str, command: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        session = self.sessions.get(session_id)
        if session is None:
            return None
        entry = {**command, "queued_at": utc_now()}
        session.commands.append(entry)
        # Oldest commands are dropped once the queue is full.
        while len(session.commands) > self.max_pending:
            session.commands.popleft()
        return entry

    def drain(self, session_id: str) -> Optional[List[Dict[str, Any]]]:
        session = self.sessions.get(session_id)
        if session is None:
            return None
        drained = list(session.commands)
        session.commands.clear()
        return drained

    def delete(self, session_id: str) -> bool:
        return self.sessions.pop(session_id, None) is not None
