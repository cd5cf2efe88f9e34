"""
Shared helpers for API routes.
Contains: body parsing, redirect building, health payload, GitHub token check.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from fastapi.responses import RedirectResponse
from pydantic import ValidationError

from coaching.orchestrator import CoachingRequest
from settings import Settings

log = logging.getLogger("api")

GITHUB_USER_URL = "https://api.github.com/user"


# ─── Request parsing ───────────────────────────────────────

def _parse_coach_body(raw: bytes) -> Optional[CoachingRequest]:
    """Decode a POST /api/coach body; None when it is missing or malformed."""
    if not raw or not raw.strip():
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    try:
        return CoachingRequest.model_validate(data)
    except ValidationError as e:
        log.info("Rejected coaching request: %s", e.errors()[:3])
        return None


# ─── Responses ─────────────────────────────────────────────

def _redirect_home(**params: str) -> RedirectResponse:
    query = urlencode(params)
    return RedirectResponse(url=f"/?{query}" if query else "/", status_code=302)


def _health_payload(settings: Settings) -> Dict[str, Any]:
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "env": settings.environment,
        "hasGithubToken": bool(settings.github_token),
        "llmConfigured": settings.llm_configured,
        "model": settings.llm_model,
        "demoMode": settings.demo_mode,
    }


# ─── GitHub token check ────────────────────────────────────

async def _github_token_check(http: httpx.AsyncClient, token: str) -> Dict[str, Any]:
    """Verify a GitHub token without echoing it. Never raises."""
    if not token:
        return {"authenticated": False, "tokenPresent": False}

    try:
        resp = await http.get(
            GITHUB_USER_URL,
            headers={"Authorization": f"token {token}", "User-Agent": "ai-health-tool"},
        )
    except httpx.HTTPError as e:
        log.warning("GitHub token check failed: %s", e)
        return {"authenticated": False, "tokenPresent": True, "error": "request_failed", "status": None}

    if resp.status_code >= 400:
        return {
            "authenticated": False,
            "tokenPresent": True,
            "error": "unauthorized" if resp.status_code == 401 else "request_failed",
            "status": resp.status_code,
        }

    scopes_header = resp.headers.get("x-oauth-scopes", "")
    scopes = [s.strip() for s in scopes_header.split(",") if s.strip()]
    try:
        body = resp.json()
    except ValueError:
        body = {}
    login = body.get("login") if isinstance(body, dict) else None
    return {"authenticated": True, "tokenPresent": True, "login": login, "scopes": scopes}
