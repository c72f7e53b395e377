import asyncio
import json

import pytest

from conftest import NOW, listing, message
from event_store import Event
from skills.base import ConfigurationError
from skills.reddit.config import DEFAULT_USER_AGENT


def hottest_options(**overrides):
    options = {
        "type": "hottest_post_subreddit",
        "auth_mode": "oauth",
        "subreddit": "python",
        "limit": "3",
        "username": "bob",
        "password": "hunter2",
        "client_id": "client-123",
        "secret_key": "secret-456",
        "bearer_token": "{{ credential('reddit_bearer_token') }}",
        "emit_events": "true",
        "expected_receive_period_in_days": "2",
    }
    options.update(overrides)
    return options


def seed_expiry(core, name="reddit", expires_at=NOW + 10 * 3600):
    core.memory_for(name).set("expires_at", expires_at)


class TestTriggerAction:
    async def test_unknown_type_logs_once_and_makes_no_request(self, core, make_agent, fake_reddit, oauth_options):
        agent = make_agent(dict(oauth_options, type="bogus"))

        await agent.trigger_action()

        assert fake_reddit.requests == []
        assert core.messages("reddit") == ["Error: type has an invalid value (bogus)"]
        assert core.logged[-1][1] == 1
        assert agent.last_run_had_error is True

    async def test_bearer_token_comes_from_credential_template(self, core, make_agent, fake_reddit, oauth_options):
        core.credentials.set("default", "reddit_bearer_token", "stored-token")
        seed_expiry(core)
        agent = make_agent(oauth_options)

        await agent.check()

        unread = fake_reddit.calls("/message/unread")[0]
        assert unread.headers["Authorization"] == "Bearer stored-token"
        assert fake_reddit.calls("/api/v1/access_token") == []

    async def test_refresh_persists_token_and_expiry(self, core, make_agent, fake_reddit, oauth_options):
        core.credentials.set("default", "reddit_bearer_token", "old-token")
        agent = make_agent(oauth_options)

        await agent.check()

        assert core.credentials.get("default", "reddit_bearer_token") == "fresh-token"
        assert core.memory_for("reddit").get("expires_at") == NOW + 86400
        assert fake_reddit.calls("/message/unread")[0].headers["Authorization"] == "Bearer fresh-token"

    async def test_expiry_survives_a_restart(self, core, make_agent, fake_reddit, oauth_options):
        await make_agent(oauth_options).check()
        assert len(fake_reddit.calls("/api/v1/access_token")) == 1

        restarted = make_agent(oauth_options)
        assert restarted.token_state.expires_at == NOW + 86400
        await restarted.check()
        assert len(fake_reddit.calls("/api/v1/access_token")) == 1

    async def test_unread_messages_become_events(self, core, make_agent, fake_reddit, oauth_options):
        seed_expiry(core)
        fake_reddit.unread_response = (200, listing(message("t4_a"), message("t4_b")))
        agent = make_agent(oauth_options)

        await agent.check()

        stored = core.events.for_agent("reddit")
        assert [e.payload["data"]["name"] for e in stored] == ["t4_a", "t4_b"]
        assert agent.working() is True

    async def test_static_mode_uses_token_verbatim(self, core, make_agent, fake_reddit):
        options = hottest_options(type="read_unreadmessage", auth_mode="static", bearer_token="fixed",
                                  username="", password="", client_id="", secret_key="")
        agent = make_agent(options)

        await agent.check()

        assert [r.url.path for r in fake_reddit.requests] == ["/message/unread"]
        assert fake_reddit.requests[0].headers["Authorization"] == "Bearer fixed"

    async def test_custom_user_agent(self, make_agent, fake_reddit):
        agent = make_agent(hottest_options(user_agent="my-bot/2.0 by bob"))
        await agent.check()
        assert fake_reddit.requests[0].headers["User-Agent"] == "my-bot/2.0 by bob"
        assert agent.http.user_agent == DEFAULT_USER_AGENT

    async def test_user_agent_not_shared_between_agents(self, make_agent, fake_reddit):
        await make_agent(hottest_options(user_agent="first/1"), name="first").check()
        await make_agent(hottest_options(), name="second").check()
        assert [r.headers["User-Agent"] for r in fake_reddit.requests] == ["first/1", DEFAULT_USER_AGENT]


class TestReceive:
    async def test_options_interpolated_against_the_event(self, core, make_agent, fake_reddit):
        fake_reddit.hot_responses = {"django": (200, listing({"kind": "t3", "data": {"title": "d1"}}))}
        agent = make_agent(hottest_options(subreddit="{{ data.subreddit }}"))
        inbound = Event(agent="inbox", payload=message("t4_a", subreddit="django"))

        await agent.receive([inbound])

        assert [str(r.url) for r in fake_reddit.requests] == ["https://www.reddit.com/r/django/hot.json?limit=3"]
        assert core.messages("reddit")[0] == json.dumps(inbound.payload)
        assert [e.payload["data"]["title"] for e in core.events.for_agent("reddit")] == ["d1"]

    async def test_each_event_triggers_its_own_action(self, make_agent, fake_reddit):
        agent = make_agent(hottest_options(subreddit="{{ data.subreddit }}"))
        await agent.receive([
            Event(agent="inbox", payload=message("t4_a", subreddit="one")),
            Event(agent="inbox", payload=message("t4_b", subreddit="two")),
        ])
        assert [r.url.path for r in fake_reddit.requests] == ["/r/one/hot.json", "/r/two/hot.json"]

    async def test_missing_event_field_renders_empty(self, make_agent, fake_reddit):
        agent = make_agent(hottest_options(subreddit="python {{ data.nothing_here }}"))
        await agent.receive([Event(agent="inbox", payload={"kind": "t4"})])
        assert [r.url.path for r in fake_reddit.requests] == ["/r/python/hot.json"]


class TestDryRun:
    async def test_captures_events_and_persists_nothing(self, core, make_agent, fake_reddit, oauth_options):
        core.credentials.set("default", "reddit_bearer_token", "old-token")
        fake_reddit.unread_response = (200, listing(message("t4_a")))
        make_agent(oauth_options)

        result = await core.dry_run("reddit")

        assert [e["data"]["name"] for e in result["events"]] == ["t4_a"]
        assert "token refresh status : 200" in result["log"]
        assert core.events.for_agent("reddit") == []
        assert core.credentials.get("default", "reddit_bearer_token") == "old-token"
        assert core.memory_for("reddit").get("expires_at") is None
        # the real side effect on Reddit still happens
        assert len(fake_reddit.calls("/api/read_all_messages")) == 1

    async def test_invalid_options_raise_before_any_request(self, core, make_agent, fake_reddit, oauth_options):
        make_agent(dict(oauth_options, client_id=""))

        with pytest.raises(ConfigurationError) as excinfo:
            await core.dry_run("reddit")

        assert [e.field for e in excinfo.value.errors] == ["client_id"]
        assert fake_reddit.requests == []

    async def test_dry_run_with_event(self, core, make_agent, fake_reddit):
        make_agent(hottest_options(subreddit="{{ data.subreddit }}"))
        result = await core.dry_run("reddit", Event(agent="inbox", payload={"data": {"subreddit": "rust"}}))
        assert fake_reddit.requests[0].url.path == "/r/rust/hot.json"
        assert result["events"] == []


class TestWorking:
    def test_not_working_without_events(self, make_agent, oauth_options):
        assert make_agent(oauth_options).working() is False

    async def test_error_in_last_run_means_not_working(self, core, make_agent, fake_reddit, oauth_options):
        seed_expiry(core)
        fake_reddit.unread_response = (200, listing(message("t4_a")))
        agent = make_agent(oauth_options)
        await agent.check()
        assert agent.working() is True

        fake_reddit.unread_response = (500, {"error": 500})
        await agent.check()
        assert agent.working() is False

    async def test_old_events_do_not_count(self, core, make_agent, oauth_options):
        agent = make_agent(dict(oauth_options, expected_receive_period_in_days="1"))
        event = core.events.add("reddit", {"kind": "t4"})
        event.created_at -= 2 * 86400
        assert agent.working() is False


class TestHostRuns:
    async def test_malformed_listing_fails_the_run(self, core, make_agent, fake_reddit, oauth_options):
        seed_expiry(core)
        fake_reddit.unread_response = (200, "<html>maintenance</html>")
        agent = make_agent(oauth_options)

        assert await core.run_check(agent) is False

        assert agent.last_run_had_error is True
        assert any(m.startswith("Run failed: MalformedResponseError") for m in core.messages("reddit"))
        assert fake_reddit.calls("/api/read_all_messages") == []

    async def test_events_routed_to_receivers(self, core, make_agent, fake_reddit, oauth_options):
        seed_expiry(core, name="inbox")
        fake_reddit.unread_response = (200, listing(message("t4_a", subreddit="golang")))
        inbox = make_agent(oauth_options, name="inbox")
        make_agent(hottest_options(subreddit="{{ data.subreddit }}"), name="hot", sources=["inbox"])

        await core.run_check(inbox)
        await asyncio.gather(*list(core._pending))

        assert fake_reddit.calls("/r/golang/hot.json")
        assert len(core.events.for_agent("inbox")) == 1


class TestValidateOptions:
    def test_templated_type_checked_after_rendering(self, core, make_agent):
        options = hottest_options(type="{{ credential('reddit_action') }}", subreddit="", limit="")
        agent = make_agent(options)
        assert agent.validate_options() == []

        core.credentials.set("default", "reddit_action", "hottest_post_subreddit")
        assert [e.field for e in agent.validate_options()] == ["subreddit", "limit"]

        core.credentials.set("default", "reddit_action", "post_comment")
        assert [e.field for e in agent.validate_options()] == ["type"]

    def test_event_templated_type_is_accepted(self, make_agent):
        agent = make_agent(hottest_options(type="{{ data.kind_of_action }}"))
        assert agent.validate_options() == []
