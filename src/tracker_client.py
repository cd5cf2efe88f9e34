"""
Fitbit Web API Client
=====================
OAuth2 authorization-code exchange plus read-only resource fetches.

Flow:
  1. authorize_url()                 ->  user consents on fitbit.com
  2. exchange_authorization_code()   ->  access/refresh token + user id
  3. fetch_resource() / fetch_today() with the stored access token

Token refresh is not handled; an expired token surfaces as TrackerAPIError.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional
from urllib.parse import quote, urlencode

import httpx

log = logging.getLogger("tracker_client")

AUTHORIZE_URL = "https://www.fitbit.com/oauth2/authorize"
TOKEN_URL = "https://api.fitbit.com/oauth2/token"
API_BASE = "https://api.fitbit.com/1/user/-"

SCOPES = ["activity", "heartrate", "sleep", "profile", "nutrition", "weight"]
TOKEN_LIFETIME_SEC = 31536000


class TrackerAuthError(Exception):
    """Authorization code could not be exchanged for tokens."""


class TrackerAPIError(Exception):
    """A tracker resource request failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class TrackerTokens:
    access_token: str
    refresh_token: Optional[str]
    user_id: Optional[str]


class TrackerClient:

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    def authorize_url(self) -> str:
        query = urlencode(
            {
                "response_type": "code",
                "client_id": self.client_id,
                "redirect_uri": self.redirect_uri,
                "scope": " ".join(SCOPES),
                "expires_in": TOKEN_LIFETIME_SEC,
            },
            quote_via=quote,
        )
        return f"{AUTHORIZE_URL}?{query}"

    async def exchange_authorization_code(self, code: str) -> TrackerTokens:
        """Trade a one-time authorization code for tokens (HTTP Basic client auth)."""
        try:
            response = await self._http.post(
                TOKEN_URL,
                data={
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.redirect_uri,
                },
                auth=(self.client_id, self.client_secret),
            )
        except httpx.HTTPError as e:
            raise TrackerAuthError(f"Token request failed: {e}") from e

        if response.status_code >= 400:
            log.error("Token exchange error: HTTP %s %s", response.status_code, response.text[:300])
            raise TrackerAuthError(f"Token endpoint returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise TrackerAuthError("Token endpoint returned a non-JSON body") from e

        access_token = body.get("access_token")
        if not access_token:
            raise TrackerAuthError("Token response has no access_token")

        return TrackerTokens(
            access_token=access_token,
            refresh_token=body.get("refresh_token"),
            user_id=body.get("user_id"),
        )

    async def fetch_resource(self, endpoint: str, access_token: str) -> Dict[str, Any]:
        """GET `/1/user/-/{endpoint}` with a bearer token."""
        url = f"{API_BASE}/{endpoint.lstrip('/')}"
        try:
            response = await self._http.get(
                url, headers={"Authorization": f"Bearer {access_token}"}
            )
        except httpx.HTTPError as e:
            log.error("Fitbit API error for %s: %s", endpoint, e)
            raise TrackerAPIError(f"Request to {endpoint} failed: {e}") from e

        if response.status_code >= 400:
            log.error("Fitbit API error for %s: HTTP %s %s", endpoint, response.status_code, response.text[:300])
            raise TrackerAPIError(f"{endpoint} returned HTTP {response.status_code}", response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise TrackerAPIError(f"{endpoint} returned a non-JSON body") from e

    async def fetch_profile(self, access_token: str) -> Dict[str, Any]:
        return await self.fetch_resource("profile.json", access_token)

    async def _optional(self, endpoint: str, access_token: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.fetch_resource(endpoint, access_token)
        except TrackerAPIError:
            return None

    async def fetch_today(self, access_token: str, day: Optional[date] = None) -> Dict[str, Any]:
        """Activity summary (required) plus heart and sleep (optional, None on failure)."""
        day_s = (day or date.today()).isoformat()
        activities, heart, sleep = await asyncio.gather(
            self.fetch_resource(f"activities/date/{day_s}.json", access_token),
            self._optional(f"activities/heart/date/{day_s}/1d.json", access_token),
            self._optional(f"sleep/date/{day_s}.json", access_token),
        )
        return {"activities": activities, "heart": heart, "sleep": sleep, "date": day_s}

    async def aclose(self) -> None:
        await self._http.aclose()
