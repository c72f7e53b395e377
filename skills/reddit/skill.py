"""
Reddit Agent - reads unread private messages or fetches subreddit hot posts.

Each run resolves the options against the triggering event (if any), then
dispatches on `type`. The token expiry survives restarts in the agent's
memory blob; the refreshed token itself goes to the credential store.
"""

import json
import time

from skills.base import AgentSkill
from skills.reddit.actions import OAUTH_BASE_URL, ActionExecutor
from skills.reddit.config import (
    DEFAULT_SCHEDULE,
    DEFAULT_USER_AGENT,
    ActionType,
    RedditAgentConfig,
    default_options,
    positive_int,
    validate_options,
)
from skills.reddit.http_client import RedditHttpClient
from skills.reddit.token_manager import TokenManager, TokenState


class RedditAgentSkill(AgentSkill):
    """Reddit API integration: unread messages and hottest posts."""

    skill_name  = "reddit"
    version     = "1.0.0"
    author      = "Reddit Agent"
    description = (
        "Interacts with the Reddit API.\n\n"
        "`type` selects the action: read_unreadmessage or hottest_post_subreddit.\n"
        "`subreddit` lists subreddits for hottest post, separated by spaces.\n"
        "`username`, `password`, `client_id` and `secret_key` are needed to obtain a bearer token.\n"
        "`debug` enables verbose logging of response bodies.\n"
        "`expected_receive_period_in_days` is the longest time this agent may go without "
        "creating an event before it is considered not working."
    )
    event_description = (
        "Each event is one Reddit listing child, e.g.\n"
        '{"kind": "t4", "data": {"subject": "re: ...", "body": "...", "name": "t4_1vxz7ox", '
        '"subreddit": "selfhosted", "new": true, "created_utc": 1686931931}}'
    )
    category         = "social"
    icon             = "\U0001f47d"
    default_schedule = DEFAULT_SCHEDULE
    can_dry_run      = True

    def __init__(self, core, name, options=None, user="default", schedule=None,
                 transport=None, clock=time.time):
        super().__init__(core, name, options=options, user=user, schedule=schedule)
        self.clock = clock
        self.token_state = TokenState.load(self.memory)
        self.http = RedditHttpClient(DEFAULT_USER_AGENT, transport=transport)

    def default_options(self):
        return default_options()

    def validate_options(self):
        return validate_options(self.options, self.interpolated())

    def working(self):
        days = positive_int(self.options.get('expected_receive_period_in_days')) or 2
        return self.core.events.created_within(self.name, days) and not self.last_run_had_error

    # ── Entry points ─────────────────────────────────────────────────

    async def check(self):
        self.last_run_had_error = False
        await self.trigger_action()

    async def receive(self, events):
        self.last_run_had_error = False
        for event in events:
            payload = getattr(event, 'payload', event)
            await self.log(json.dumps(payload, default=str))
            await self.trigger_action(event)

    # ── Dispatch ─────────────────────────────────────────────────────

    def resolve_config(self, event=None) -> RedditAgentConfig:
        return RedditAgentConfig.from_options(self.interpolated(event))

    async def trigger_action(self, event=None):
        config = self.resolve_config(event)
        action = config.action
        if action is None:
            await self.log(f"Error: type has an invalid value ({config.type})", priority=1)
            return

        # a dry run must not move the real expiry
        state = TokenState(self.token_state.expires_at) if self.dry_running else self.token_state
        tokens = TokenManager(config, self.http, state, self.credentials, self.log, clock=self.clock)
        executor = ActionExecutor(config, self.http, tokens, self._emit, self.log)
        try:
            if action == ActionType.READ_UNREAD_MESSAGE:
                await executor.check_unreadmessage(OAUTH_BASE_URL)
            elif action == ActionType.HOTTEST_POST_SUBREDDIT:
                await executor.check_hottest_post_subreddit(OAUTH_BASE_URL)
        finally:
            if not self.dry_running:
                self.token_state.save(self.memory)

    async def _emit(self, output_event):
        await self.create_event(output_event["payload"])

    async def on_unload(self):
        await self.http.aclose()
