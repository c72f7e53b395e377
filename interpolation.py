"""
Reddit Agent Host - option templating.

Agent options may contain Jinja2 templates that are rendered right before a
run. The inbound event's payload fields are available at the top level
(`{{ data.subject }}`), the whole event as `event`, and stored credentials
through `credential('name')`. Unknown names render as empty strings.
"""

import jinja2
from jinja2.sandbox import SandboxedEnvironment

_env = SandboxedEnvironment(undefined=jinja2.ChainableUndefined, autoescape=False)


def _event_context(event):
    if event is None:
        return {}
    payload = getattr(event, 'payload', event)
    context = dict(payload) if isinstance(payload, dict) else {}
    context['event'] = payload
    return context


def is_template(value):
    return isinstance(value, str) and ('{{' in value or '{%' in value)


def interpolate(template, event=None, credentials=None):
    """Render one option value. Non-strings and plain strings pass through."""
    if not is_template(template):
        return template
    context = _event_context(event)

    def credential(name):
        if credentials is None:
            return ''
        value = credentials.get(name)
        return '' if value is None else value

    context['credential'] = credential
    return _env.from_string(template).render(context)


def interpolate_options(options, event=None, credentials=None):
    """Render every string inside an option structure (dicts and lists included)."""
    if isinstance(options, dict):
        return {k: interpolate_options(v, event, credentials) for k, v in options.items()}
    if isinstance(options, list):
        return [interpolate_options(v, event, credentials) for v in options]
    return interpolate(options, event, credentials)
