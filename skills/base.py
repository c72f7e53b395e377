"""
AgentSkill: base class for every agent the host can run.

A skill is instantiated once per configured agent (name + options). The host
calls check() on the agent's schedule and receive() when an upstream agent
emits events. Skills talk to the host only through the helpers defined here:
create_event(), log(), self.memory, self.credentials and interpolated().
"""


class ConfigurationError(Exception):
    """Agent options failed validation; raised before any run is attempted."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("; ".join(str(e) for e in self.errors) or "invalid configuration")


class DryRunCredentials:
    """Reads through to the real store, keeps writes to itself."""

    def __init__(self, credentials):
        self._credentials = credentials
        self.writes = {}

    def get(self, name, default=None):
        if name in self.writes:
            return self.writes[name]
        return self._credentials.get(name, default)

    def set(self, name, value):
        self.writes[name] = value


class AgentSkill:
    """Base class for all agent skills."""

    # ── Metadata (override in subclass) ──────────────────────────────
    skill_name        = "unnamed_skill"
    version           = "0.1.0"
    author            = "unknown"
    description       = "No description provided."
    event_description = ""
    category          = "general"
    icon              = "⚙️"
    default_schedule  = None          # e.g. "every_1h"; None = event-driven only
    can_dry_run       = False

    def __init__(self, core, name, options=None, user="default", schedule=None):
        self.core = core
        self.name = name
        self.user = user
        self.enabled = True
        self.options = dict(options) if options is not None else self.default_options()
        self.schedule = schedule or self.default_schedule
        self.memory = core.memory_for(name)
        self.credentials = core.credentials.scoped(user)
        self.last_run_had_error = False
        self._dry_run = None        # {"events": [...], "log": [...]} while dry-running

    # ── Override points ──────────────────────────────────────────────

    def default_options(self) -> dict:
        return {}

    def validate_options(self) -> list:
        """Return a list of validation errors (empty = valid)."""
        return []

    async def check(self):
        """Called on every scheduled tick."""

    async def receive(self, events):
        """Called with a list of inbound Event records."""

    def working(self) -> bool:
        return not self.last_run_had_error

    async def run(self):
        """Optional background loop. Called once at startup as an asyncio task."""

    async def on_load(self):
        """Called after the skill is instantiated."""

    async def on_unload(self):
        """Called before the skill is disabled/removed."""

    # ── Host helpers ─────────────────────────────────────────────────

    @property
    def dry_running(self):
        return self._dry_run is not None

    def interpolated(self, event=None) -> dict:
        """Options with every template rendered against `event`."""
        return self.core.interpolate(self.options, event=event, credentials=self.credentials)

    async def create_event(self, payload):
        if self._dry_run is not None:
            self._dry_run["events"].append(payload)
            return None
        return await self.core.emit_event(self, payload)

    async def log(self, message, priority=3):
        if priority == 1:
            self.last_run_had_error = True
        if self._dry_run is not None:
            self._dry_run["log"].append(str(message))
            return
        await self.core.log(message, priority=priority, component=self.name)

    async def dry_run(self, event=None):
        """Run once without storing events, memory or credential writes."""
        errors = self.validate_options()
        if errors:
            raise ConfigurationError(errors)
        real_credentials = self.credentials
        self.credentials = DryRunCredentials(real_credentials)
        self._dry_run = {"events": [], "log": []}
        try:
            if event is None:
                await self.check()
            else:
                await self.receive([event])
            return self._dry_run
        finally:
            self._dry_run = None
            self.credentials = real_credentials
