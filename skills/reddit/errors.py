"""
Reddit Agent - error types.
"""

from dataclasses import dataclass

# ── Config error kinds ────────────────────────────────────────────────
ERROR_MISSING = "MISSING"     # required field empty or absent
ERROR_INVALID = "INVALID"     # present but not an accepted value


@dataclass(frozen=True)
class ConfigError:
    """One validation failure. `field` names the offending option."""
    kind: str
    field: str
    message: str

    def __str__(self):
        return self.message


class RedditAgentError(Exception):
    """Base for every error raised by the Reddit skill."""


class MalformedResponseError(RedditAgentError):
    """A 2xx response whose body is not JSON or lacks data.children."""

    def __init__(self, url, reason):
        self.url = url
        self.reason = reason
        super().__init__(f"Malformed response from {url}: {reason}")
