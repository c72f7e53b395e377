"""
Reddit Agent - bearer token lifecycle.

OAuth mode exchanges username/password plus the app's client credentials
for an access token (password grant) and refreshes it once fewer than two
hours remain. Static mode trusts the configured token as-is.
"""

import time
from dataclasses import dataclass
from typing import Optional

import httpx

from skills.reddit.config import AuthMode

ACCESS_TOKEN_URL = "https://ssl.reddit.com/api/v1/access_token"
REFRESH_THRESHOLD_HOURS = 2
MEMORY_KEY = "expires_at"


@dataclass
class TokenState:
    """Absolute expiry (epoch seconds) of the current token, if known."""
    expires_at: Optional[float] = None

    @classmethod
    def load(cls, memory):
        value = memory.get(MEMORY_KEY)
        return cls(expires_at=float(value) if value is not None else None)

    def save(self, memory):
        if self.expires_at is not None:
            memory.set(MEMORY_KEY, self.expires_at)


class TokenManager:
    """Keeps a non-expired bearer token available for authenticated calls.

    `credentials` is any object with get(name) / set(name, value); `log` is
    the skill's async log coroutine.
    """

    def __init__(self, config, http, state, credentials, log, clock=time.time):
        self.config = config
        self.http = http
        self.state = state
        self.credentials = credentials
        self.log = log
        self.clock = clock
        self.bearer_token = config.bearer_token

    def hours_remaining(self):
        if self.state.expires_at is None:
            return None
        return (self.state.expires_at - self.clock()) / 3600

    async def ensure_fresh_token(self):
        if self.config.auth_mode == AuthMode.STATIC:
            return
        remaining = self.hours_remaining()
        if remaining is None or remaining < REFRESH_THRESHOLD_HOURS:
            await self.refresh()
        elif self.config.debug:
            await self.log(f"token refresh not needed ({remaining:.1f}h remaining)")

    async def refresh(self):
        """Run the password grant. Failures are logged, never raised."""
        try:
            r = await self.http.post(
                ACCESS_TOKEN_URL,
                data={
                    "grant_type": "password",
                    "username": self.config.username,
                    "password": self.config.password,
                },
                auth=(self.config.client_id, self.config.secret_key),
                user_agent=self.config.user_agent,
            )
        except httpx.TransportError as e:
            await self.log(f"token refresh failed: {e!r}", priority=1)
            return False

        await self.log(f"token refresh status : {r.status}")
        if self.config.debug:
            await self.log("body")
            await self.log(r.body)
        if not r.ok:
            await self.log(f"token refresh rejected ({r.status}), continuing with current token", priority=1)
            return False

        try:
            payload = r.json()
            access_token = payload["access_token"]
            expires_in = float(payload["expires_in"])
        except (ValueError, KeyError, TypeError) as e:
            await self.log(f"token refresh returned an unusable body: {e!r}", priority=1)
            return False

        if access_token != self.bearer_token:
            self.credentials.set(self.config.credential_name, access_token)
            self.bearer_token = access_token
            await self.log(f"bearer token updated in credential '{self.config.credential_name}'")

        self.state.expires_at = self.clock() + expires_in
        return True
