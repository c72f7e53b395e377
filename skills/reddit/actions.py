"""
Reddit Agent - the two actions.

Every request is logged with its status (and the raw body in debug mode).
A non-2xx status or a transport error aborts only the current step; a 2xx
body that is not a Reddit listing raises MalformedResponseError.
"""

import httpx

from skills.reddit.errors import MalformedResponseError

OAUTH_BASE_URL = "https://oauth.reddit.com"
PUBLIC_BASE_URL = "https://www.reddit.com"


def listing_children(response):
    """Return data.children from a Reddit listing response."""
    try:
        payload = response.json()
    except ValueError as e:
        raise MalformedResponseError(response.url, f"invalid JSON ({e})")
    data = payload.get("data") if isinstance(payload, dict) else None
    children = data.get("children") if isinstance(data, dict) else None
    if not isinstance(children, list):
        raise MalformedResponseError(response.url, "missing data.children")
    return children


class ActionExecutor:
    """Runs one action against a resolved RedditAgentConfig.

    `emit` receives each OutputEvent payload; `log` is the skill's async
    log coroutine.
    """

    def __init__(self, config, http, tokens, emit, log):
        self.config = config
        self.http = http
        self.tokens = tokens
        self.emit = emit
        self.log = log

    def _auth_headers(self):
        return {"Authorization": f"Bearer {self.tokens.bearer_token}"}

    async def _log_response(self, r):
        await self.log(f"request status : {r.status}")
        if self.config.debug:
            await self.log("body")
            await self.log(r.body)

    async def _request(self, method, url, headers=None):
        """Send one request; None when the transport failed or status is not 2xx."""
        try:
            if method == "POST":
                r = await self.http.post(url, headers=headers, user_agent=self.config.user_agent)
            else:
                r = await self.http.get(url, headers=headers, user_agent=self.config.user_agent)
        except httpx.TransportError as e:
            await self.log(f"{method} {url} failed: {e!r}", priority=1)
            return None
        await self._log_response(r)
        if not r.ok:
            await self.log(f"{method} {url} returned {r.status}", priority=1)
            return None
        return r

    # ── Unread messages ──────────────────────────────────────────────

    async def check_unreadmessage(self, base_url=OAUTH_BASE_URL):
        await self.tokens.ensure_fresh_token()
        r = await self._request("GET", f"{base_url}/message/unread", self._auth_headers())
        if r is None:
            return 0

        children = listing_children(r)
        for message in children:
            if self.config.emit_events:
                await self.emit({"payload": message})
        # cleared even when nothing was emitted
        if children:
            await self.read_all_messages(base_url)
        return len(children)

    async def read_all_messages(self, base_url=OAUTH_BASE_URL):
        await self.tokens.ensure_fresh_token()
        r = await self._request("POST", f"{base_url}/api/read_all_messages", self._auth_headers())
        return r is not None

    # ── Hottest posts ────────────────────────────────────────────────

    async def fetch_hottest_post(self, base_url, subreddit):
        if self.config.limit is None:
            # a templated limit can still render empty or non-numeric
            await self.log(f"r/{subreddit} skipped: limit is not a positive integer", priority=1)
            return 0
        # public listing: no bearer header, and emit_events does not apply
        url = f"{PUBLIC_BASE_URL}/r/{subreddit}/hot.json?limit={self.config.limit}"
        r = await self._request("GET", url)
        if r is None:
            return 0

        children = listing_children(r)
        for post in children:
            await self.emit({"payload": post})
        return len(children)

    async def check_hottest_post_subreddit(self, base_url=OAUTH_BASE_URL):
        total = 0
        for subreddit in self.config.subreddits:
            total += await self.fetch_hottest_post(base_url, subreddit)
        return total
