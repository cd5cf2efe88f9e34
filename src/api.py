"""
FastAPI backend for the AI health coach frontend.

Route handlers are defined here; shared utilities live in routes/helpers.py.
Everything stateful (call queue, rate gate, sessions, response log, HTTP
clients) is built by create_app() and reached through `request.app.state`.

Run locally:
    $ uvicorn api:app --app-dir src --port 3001
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import httpx
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware

from coaching.demo_data import demo_activities, demo_profile
from coaching.orchestrator import CoachingService
from coaching.response_log import ResponseLog
from llm_client import CompletionClient, RateLimitRetry
from llm_queue import CallQueue, RateGate
from routes.helpers import (
    _github_token_check, _health_payload, _parse_coach_body, _redirect_home,
)
from routes.sessions import Session, SessionStore
from settings import Settings
from tracker_client import TrackerAPIError, TrackerAuthError, TrackerClient

log = logging.getLogger("api")

RESPONSES_LIMIT = 50

router = APIRouter()


# ─── Auth ──────────────────────────────────────────────────

@router.get("/auth/provider")
@router.get("/auth/fitbit")
def auth_start(request: Request) -> RedirectResponse:
    tracker: TrackerClient = request.app.state.tracker
    return RedirectResponse(url=tracker.authorize_url())


@router.get("/auth/provider/callback")
@router.get("/auth/fitbit/callback")
async def auth_callback(request: Request, code: Optional[str] = None) -> RedirectResponse:
    if not code:
        return _redirect_home(error="no_code")

    tracker: TrackerClient = request.app.state.tracker
    try:
        tokens = await tracker.exchange_authorization_code(code)
    except TrackerAuthError as e:
        log.error("Token exchange error: %s", e)
        return _redirect_home(error="auth_failed")

    request.app.state.sessions.create(
        request,
        Session(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            user_id=tokens.user_id,
        ),
    )
    log.info("Fitbit connected for user %s", tokens.user_id)
    return _redirect_home(connected="true")


@router.get("/api/auth/status")
def auth_status(request: Request) -> Dict[str, Any]:
    session = request.app.state.sessions.get(request)
    return {
        "authenticated": session is not None,
        "userId": session.user_id if session else None,
    }


@router.post("/api/auth/logout")
def auth_logout(request: Request) -> Dict[str, Any]:
    request.app.state.sessions.destroy(request)
    return {"success": True}


# ─── Tracker data ──────────────────────────────────────────

def _live_session(request: Request) -> Optional[Session]:
    """Session to use for live data, or None when demo data should be served."""
    if request.app.state.settings.demo_mode:
        return None
    return request.app.state.sessions.get(request)


@router.get("/api/fitness/profile")
@router.get("/api/fitbit/profile")
async def fitness_profile(request: Request) -> Any:
    session = _live_session(request)
    if session is None:
        return demo_profile()

    try:
        return await request.app.state.tracker.fetch_profile(session.access_token)
    except TrackerAPIError:
        return JSONResponse(status_code=500, content={"error": "Failed to fetch profile"})


@router.get("/api/fitness/activities")
@router.get("/api/fitbit/activities")
async def fitness_activities(request: Request) -> Any:
    session = _live_session(request)
    if session is None:
        return demo_activities()

    try:
        return await request.app.state.tracker.fetch_today(session.access_token)
    except TrackerAPIError as e:
        log.error("Activities fetch error: %s", e)
        return JSONResponse(status_code=500, content={"error": "Failed to fetch activities"})


# ─── Coaching ──────────────────────────────────────────────

@router.post("/api/coach")
async def coach(request: Request) -> JSONResponse:
    body = _parse_coach_body(await request.body())
    if body is None:
        return JSONResponse(status_code=400, content={"error": "No prompt or data provided"})

    outcome = await request.app.state.coach.coach(body)
    return JSONResponse(status_code=outcome.status_code, content=outcome.body)


@router.get("/api/queue/status")
def queue_status(request: Request) -> Dict[str, Any]:
    return request.app.state.queue.status()


@router.get("/api/responses")
def recent_responses(request: Request) -> Dict[str, Any]:
    items = request.app.state.response_log.recent(RESPONSES_LIMIT)
    return {"count": len(items), "items": items}


# ─── Ops ───────────────────────────────────────────────────

@router.get("/health")
def health(request: Request) -> Dict[str, Any]:
    return _health_payload(request.app.state.settings)


@router.get("/api/github/check")
async def github_check(request: Request) -> Dict[str, Any]:
    return await _github_token_check(
        request.app.state.github_http, request.app.state.settings.github_token
    )


# ─── App factory ───────────────────────────────────────────

def create_app(
    settings: Optional[Settings] = None,
    llm_http: Optional[httpx.AsyncClient] = None,
    tracker_http: Optional[httpx.AsyncClient] = None,
    github_http: Optional[httpx.AsyncClient] = None,
    gate: Optional[RateGate] = None,
    retry: Optional[RateLimitRetry] = None,
) -> FastAPI:
    """Build the app and its owned state. Clients/gate/retry are injectable for tests."""
    settings = settings or Settings.from_env()

    completion = CompletionClient(
        settings.llm_api_url, settings.llm_model, settings.llm_api_key, http_client=llm_http
    )
    tracker = TrackerClient(
        settings.fitbit_client_id,
        settings.fitbit_client_secret,
        settings.fitbit_redirect_uri,
        http_client=tracker_http,
    )
    gate = gate or RateGate(settings.min_interval_seconds)
    retry = retry or RateLimitRetry(settings.llm_max_retries, settings.llm_retry_base_delay)
    queue = CallQueue(gate)
    response_log = ResponseLog(settings.response_log_path)
    github = github_http or httpx.AsyncClient(timeout=15.0)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("Fitbit OAuth redirect: %s", settings.fitbit_redirect_uri)
        log.info("LLM API URL: %s", settings.llm_api_url)
        log.info("Environment: %s", settings.environment)
        log.info(
            "LLM configured: %s (model: %s)",
            "yes" if settings.llm_configured else "no",
            settings.llm_model,
        )
        yield
        await completion.aclose()
        await tracker.aclose()
        await github.aclose()

    app = FastAPI(title="AI Health Coach API", version="1.0.0", lifespan=lifespan)

    app.state.settings = settings
    app.state.tracker = tracker
    app.state.queue = queue
    app.state.response_log = response_log
    app.state.sessions = SessionStore()
    app.state.github_http = github
    app.state.coach = CoachingService(
        client=completion,
        queue=queue,
        gate=gate,
        retry=retry,
        response_log=response_log,
        demo_mode=settings.demo_mode,
    )

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        https_only=settings.is_production,
        same_site="lax",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(router)

    if settings.static_dir and os.path.isdir(settings.static_dir):
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")
    else:
        log.info("Static directory %r not found; frontend not served", settings.static_dir)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
