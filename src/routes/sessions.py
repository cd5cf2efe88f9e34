"""
Server-side session records.

The browser only carries a signed session id (Starlette's SessionMiddleware);
tokens never leave the process. One writer (the OAuth callback), many readers.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Dict, Optional

from starlette.requests import Request

SESSION_KEY = "sid"


@dataclass
class Session:
    access_token: str
    refresh_token: Optional[str] = None
    user_id: Optional[str] = None


class SessionStore:

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}

    def get(self, request: Request) -> Optional[Session]:
        sid = request.session.get(SESSION_KEY)
        if not sid:
            return None
        return self._sessions.get(sid)

    def create(self, request: Request, session: Session) -> str:
        """Store `session` under a fresh id, replacing any previous one for this client."""
        self.destroy(request)
        sid = secrets.token_urlsafe(32)
        self._sessions[sid] = session
        request.session[SESSION_KEY] = sid
        return sid

    def destroy(self, request: Request) -> None:
        sid = request.session.pop(SESSION_KEY, None)
        if sid:
            self._sessions.pop(sid, None)
        request.session.clear()
