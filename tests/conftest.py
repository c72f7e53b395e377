import httpx
import pytest
import yaml

from agent_core import AgentCore

NOW = 1_700_000_000.0


def listing(*children):
    return {"kind": "Listing", "data": {"children": list(children)}}


def message(name, subject="hello", subreddit="selfhosted"):
    return {"kind": "t4", "data": {"name": name, "subject": subject, "subreddit": subreddit, "new": True}}


class FakeReddit:
    """Stands in for the four Reddit endpoints behind an httpx.MockTransport."""

    def __init__(self):
        self.requests = []
        self.token_response = (200, {"access_token": "fresh-token", "token_type": "bearer", "expires_in": 86400})
        self.unread_response = (200, listing())
        self.read_all_response = (200, {})
        self.hot_responses = {}

    def handler(self, request):
        self.requests.append(request)
        url = request.url
        if url.host == "ssl.reddit.com" and url.path == "/api/v1/access_token":
            status, body = self.token_response
        elif url.host == "oauth.reddit.com" and url.path == "/message/unread":
            status, body = self.unread_response
        elif url.host == "oauth.reddit.com" and url.path == "/api/read_all_messages":
            status, body = self.read_all_response
        elif url.host == "www.reddit.com" and url.path.startswith("/r/"):
            subreddit = url.path.split("/")[2]
            status, body = self.hot_responses.get(subreddit, (200, listing()))
        else:
            status, body = 404, {"error": 404}
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    @property
    def transport(self):
        return httpx.MockTransport(self.handler)

    def calls(self, path):
        return [r for r in self.requests if r.url.path == path]


class RecordingCredentials:
    def __init__(self, values=None):
        self.values = dict(values or {})
        self.writes = []

    def get(self, name, default=None):
        return self.values.get(name, default)

    def set(self, name, value):
        self.writes.append((name, value))
        self.values[name] = value


class RecordingCore(AgentCore):
    """AgentCore that also keeps every log call in memory."""

    def __init__(self, config_path):
        super().__init__(config_path)
        self.logged = []

    async def log(self, message, priority=3, component=None):
        self.logged.append((str(message), priority, component))
        await super().log(message, priority=priority, component=component)

    def messages(self, component=None):
        return [m for m, _, c in self.logged if component is None or c == component]


@pytest.fixture
def fake_reddit():
    return FakeReddit()


@pytest.fixture
def core(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.dump({
        'system': {'name': 'Test Host', 'version': '0.0.1'},
        'paths': {'logs': str(tmp_path / 'logs'), 'state': str(tmp_path / 'state')},
        'agents': [],
    }))
    return RecordingCore(str(config_path))


@pytest.fixture
def oauth_options():
    return {
        "type": "read_unreadmessage",
        "auth_mode": "oauth",
        "username": "bob",
        "password": "hunter2",
        "client_id": "client-123",
        "secret_key": "secret-456",
        "bearer_token": "{{ credential('reddit_bearer_token') }}",
        "subreddit": "",
        "limit": "",
        "debug": "false",
        "emit_events": "true",
        "expected_receive_period_in_days": "2",
    }


@pytest.fixture
def make_agent(core, fake_reddit):
    def _make(options, name="reddit", clock=lambda: NOW, **kwargs):
        return core.add_agent(name, skill='reddit', options=options,
                              transport=fake_reddit.transport, clock=clock, **kwargs)
    return _make
