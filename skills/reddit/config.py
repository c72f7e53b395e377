"""
Reddit Agent - option declarations, validation and the typed config.

Options arrive from the host as a loose string-keyed bag (form values are
strings, YAML may give real bools/ints). validate_options() inspects that bag
and returns every problem it finds; RedditAgentConfig.from_options() turns an
already-interpolated bag into the immutable struct the actions run against.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from interpolation import is_template
from skills.reddit.errors import ERROR_INVALID, ERROR_MISSING, ConfigError

DEFAULT_CREDENTIAL_NAME = "reddit_bearer_token"
DEFAULT_USER_AGENT = "reddit-agent/1"
DEFAULT_SCHEDULE = "every_1h"


class ActionType(str, Enum):
    READ_UNREAD_MESSAGE = "read_unreadmessage"
    HOTTEST_POST_SUBREDDIT = "hottest_post_subreddit"


class AuthMode(str, Enum):
    OAUTH = "oauth"      # password grant, token refreshed before expiry
    STATIC = "static"    # fixed bearer token, never refreshed


ACTION_TYPES = [a.value for a in ActionType]
AUTH_MODES = [m.value for m in AuthMode]
AUTH_FIELDS = ("username", "password", "client_id", "secret_key")
BOOLEAN_FIELDS = ("emit_events", "details", "debug")


def default_options():
    return {
        "type": ActionType.READ_UNREAD_MESSAGE.value,
        "auth_mode": AuthMode.OAUTH.value,
        "debug": "false",
        "username": "",
        "password": "",
        "client_id": "",
        "secret_key": "",
        "bearer_token": "{{ credential('%s') }}" % DEFAULT_CREDENTIAL_NAME,
        "subreddit": "",
        "limit": "",
        "emit_events": "true",
        "expected_receive_period_in_days": "2",
    }


# ── Coercion helpers ──────────────────────────────────────────────────

def boolify(value: Any) -> Optional[bool]:
    """Return True/False for a boolean or 'true'/'false' string, else None."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return None


def positive_int(value: Any) -> Optional[int]:
    """Parse a positive integer from an int or digit string, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        number = int(value.strip())
        return number if number > 0 else None
    return None


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _bearer_token(options: Dict[str, Any]) -> Any:
    # `token` is the option name the fixed-token variant used
    if _present(options.get("bearer_token")):
        return options.get("bearer_token")
    return options.get("token")


# ── Validation ────────────────────────────────────────────────────────

def validate_options(options: Dict[str, Any], interpolated: Optional[Dict[str, Any]] = None) -> List[ConfigError]:
    """Collect every validation error for an option bag. Never raises.

    `type` is checked on `interpolated` (the options rendered without an
    event) when given. Without it, a templated `type` or `limit` is only
    checked for presence; its real value is known at run time.
    """
    errors: List[ConfigError] = []
    options = options or {}
    interpolated = options if interpolated is None else interpolated

    def missing(field, message=None):
        errors.append(ConfigError(ERROR_MISSING, field, message or f"{field} is a required field"))

    def invalid(field, message):
        errors.append(ConfigError(ERROR_INVALID, field, message))

    action = interpolated.get("type")
    action = action.strip() if isinstance(action, str) else action
    if _present(action) and action not in ACTION_TYPES and not is_template(action):
        invalid("type", "type has invalid value: should be 'read_unreadmessage' 'hottest_post_subreddit'")

    auth_mode = options.get("auth_mode") or AuthMode.OAUTH.value
    if auth_mode not in AUTH_MODES:
        invalid("auth_mode", "auth_mode has invalid value: should be 'oauth' 'static'")

    if action == ActionType.HOTTEST_POST_SUBREDDIT.value:
        if not _present(options.get("subreddit")):
            missing("subreddit")
        if not _present(options.get("limit")):
            missing("limit")
        elif not is_template(options.get("limit")) and positive_int(options.get("limit")) is None:
            invalid("limit", "limit must be a positive integer")

    if action in ACTION_TYPES:
        if auth_mode == AuthMode.OAUTH.value:
            for field in AUTH_FIELDS:
                if not _present(options.get(field)):
                    missing(field)
        if not _present(_bearer_token(options)):
            missing("bearer_token")

    for field in BOOLEAN_FIELDS:
        if field in options and boolify(options[field]) is None:
            invalid(field, f"if provided, {field} must be true or false")

    if positive_int(options.get("expected_receive_period_in_days")) is None:
        missing(
            "expected_receive_period_in_days",
            "Please provide 'expected_receive_period_in_days' to indicate how many days "
            "can pass before this Agent is considered to be not working",
        )

    return errors


# ── Typed config ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class RedditAgentConfig:
    """Fully resolved options for a single run."""
    type: str
    auth_mode: AuthMode = AuthMode.OAUTH
    subreddit: str = ""
    limit: Optional[int] = None
    username: str = ""
    password: str = ""
    client_id: str = ""
    secret_key: str = ""
    bearer_token: str = ""
    debug: bool = False
    emit_events: bool = True
    expected_receive_period_in_days: int = 2
    credential_name: str = DEFAULT_CREDENTIAL_NAME
    user_agent: str = DEFAULT_USER_AGENT

    @property
    def action(self) -> Optional[ActionType]:
        """The selected action, or None when `type` is not one we know."""
        try:
            return ActionType(self.type)
        except ValueError:
            return None

    @property
    def subreddits(self) -> List[str]:
        return self.subreddit.split()

    @classmethod
    def from_options(cls, options: Dict[str, Any]) -> "RedditAgentConfig":
        def text(key, default=""):
            value = options.get(key)
            return default if value is None else str(value).strip()

        debug = boolify(options.get("debug"))
        emit_events = boolify(options.get("emit_events"))
        token = _bearer_token(options)
        return cls(
            type=text("type"),
            auth_mode=AuthMode(options.get("auth_mode") or AuthMode.OAUTH.value),
            subreddit=text("subreddit"),
            limit=positive_int(options.get("limit")),
            username=text("username"),
            password=text("password"),
            client_id=text("client_id"),
            secret_key=text("secret_key"),
            bearer_token="" if token is None else str(token).strip(),
            debug=bool(debug),
            emit_events=True if emit_events is None else emit_events,
            expected_receive_period_in_days=positive_int(options.get("expected_receive_period_in_days")) or 2,
            credential_name=text("credential_name", DEFAULT_CREDENTIAL_NAME) or DEFAULT_CREDENTIAL_NAME,
            user_agent=text("user_agent", DEFAULT_USER_AGENT) or DEFAULT_USER_AGENT,
        )
