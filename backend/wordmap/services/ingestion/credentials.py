"""
Credential handling for API sources.

Static keys are attached to each request according to the source's auth
type. OAuth sources use a client-credentials token that is cached until it
expires and can be invalidated after an authorization failure.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional
import logging

import httpx

from wordmap.core.errors import AuthError, ConfigurationError
from wordmap.services.ingestion.base import ApiSourceConfig, AuthType

logger = logging.getLogger(__name__)


@dataclass
class AccessToken:
    """Cached bearer token."""
    access_token: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return bool(self.access_token) and now < self.expires_at


class StaticKeyCredentials:
    """Attaches a fixed API key as a header, bearer token or query parameter."""

    def __init__(self, config: ApiSourceConfig, api_key: str):
        if not api_key:
            raise ConfigurationError(f"{config.name}: API key is not configured")
        self.config = config
        self.api_key = api_key

    def apply(self, headers: dict[str, str], params: dict[str, Any]) -> None:
        auth_type = self.config.auth_type
        if auth_type == AuthType.HEADER:
            headers[self.config.auth_param or "X-Api-Key"] = self.api_key
        elif auth_type == AuthType.BEARER:
            headers["Authorization"] = f"Bearer {self.api_key}"
        elif auth_type == AuthType.QUERY:
            params[self.config.auth_param or "key"] = self.api_key


class OAuthCredentialProvider:
    """
    Client-credentials token lifecycle for one API source.

    The token is fetched lazily, reused until ``expires_in`` elapses and
    refetched after ``invalidate()``.
    """

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        client: Optional[httpx.AsyncClient] = None,
        user_agent: str = "WordmapZeitgeist/1.0",
        timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not client_id or not client_secret:
            raise ConfigurationError("OAuth client id and secret are required")
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.user_agent = user_agent
        self.timeout = timeout
        self._client = client
        self._clock = clock
        self._token: Optional[AccessToken] = None
        self._lock = asyncio.Lock()

    async def get_token(self) -> str:
        """Return a valid access token, exchanging credentials if needed."""
        async with self._lock:
            if self._token and self._token.is_valid(self._clock()):
                return self._token.access_token
            self._token = await self._exchange()
            return self._token.access_token

    def invalidate(self):
        """Drop the cached token so the next call re-authenticates."""
        self._token = None

    def apply(self, headers: dict[str, str], token: str) -> None:
        headers["Authorization"] = f"Bearer {token}"

    async def _exchange(self) -> AccessToken:
        logger.info(f"Requesting OAuth token from {self.token_url}")
        try:
            if self._client is not None:
                response = await self._post(self._client)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await self._post(client)
        except httpx.HTTPError as e:
            raise AuthError(f"OAuth token request failed: {e}", status_code=None) from e

        if not response.is_success:
            raise AuthError(
                f"OAuth token request failed: HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise AuthError("OAuth response is not JSON", status_code=response.status_code) from e

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            raise AuthError("OAuth response missing access token", status_code=response.status_code)

        expires_in = float(data.get("expires_in") or 3600)
        return AccessToken(access_token=access_token, expires_at=self._clock() + expires_in)

    async def _post(self, client: httpx.AsyncClient) -> httpx.Response:
        return await client.post(
            self.token_url,
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.client_secret),
            headers={"User-Agent": self.user_agent},
            timeout=self.timeout,
        )
