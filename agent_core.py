import asyncio
import importlib
import json
import os
import signal
import sys
import yaml
import logging
from datetime import datetime

from agent_memory import AgentMemory
from credential_store import CredentialStore
from event_store import EventStore
from interpolation import interpolate_options
from scheduler import AgentScheduler
from skills.base import ConfigurationError

# Silence noisy HTTP libraries globally; agent runs log through core.log
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

# skill key (as used in config.yaml) -> (module, class)
SKILLS = {
    'reddit': ('skills.reddit.skill', 'RedditAgentSkill'),
}

DEFAULT_CONFIG = {
    'system': {'name': 'Reddit Agent Host', 'version': '1.0.0'},
    'paths':  {'logs': './logs', 'state': './state'},
}

LOG_MAX_BYTES = 2_000_000


class AgentCore:
    def __init__(self, config_path='config.yaml'):
        self.config_path = os.path.abspath(config_path)
        self.config = self.load_config()
        paths = self.config['paths']
        self.logs_dir = paths.get('logs', './logs')
        self.state_dir = paths.get('state', './state')
        self.credentials = CredentialStore(os.path.join(self.state_dir, 'credentials.yaml'))
        self.events = EventStore(self.state_dir)
        self.agents = {}
        self.receivers = {}     # source agent name -> [receiving agent names]
        self._locks = {}
        self._pending = set()
        self.scheduler = AgentScheduler(self)
        self.running = True

    def load_config(self):
        if not os.path.exists(self.config_path):
            config = {section: dict(values) for section, values in DEFAULT_CONFIG.items()}
            config['agents'] = []
            return config
        with open(self.config_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f) or {}

        # ── Auto-migrate: fill in sections and keys older files lack ────
        migrated = False
        for section, section_defaults in DEFAULT_CONFIG.items():
            current = config.setdefault(section, {})
            if not isinstance(current, dict):
                continue
            for key, value in section_defaults.items():
                if key not in current:
                    current[key] = value
                    migrated = True
        if 'agents' not in config:
            config['agents'] = []
            migrated = True

        if migrated:
            try:
                with open(self.config_path, 'w', encoding='utf-8') as f:
                    yaml.dump(config, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
            except OSError as e:
                print(f"[Core] Could not write migrated config: {e}")
        return config

    # ── Collaborators handed to skills ───────────────────────────────

    def memory_for(self, agent_name):
        return AgentMemory(self.state_dir, agent_name)

    def interpolate(self, options, event=None, credentials=None):
        return interpolate_options(options, event=event, credentials=credentials)

    async def emit_event(self, agent, payload):
        """Store an event from `agent` and hand it to the agents that receive from it."""
        event = self.events.add(agent.name, payload)
        for receiver_name in self.receivers.get(agent.name, []):
            receiver = self.agents.get(receiver_name)
            if receiver and receiver.enabled:
                task = asyncio.create_task(self.run_receive(receiver, [event]))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)
        return event

    # ── Agents ───────────────────────────────────────────────────────

    def add_agent(self, name, skill='reddit', options=None, user='default', schedule=None, sources=None, **kwargs):
        if skill not in SKILLS:
            raise ValueError(f"Unknown skill: {skill}")
        module_path, class_name = SKILLS[skill]
        cls = getattr(importlib.import_module(module_path), class_name)
        agent = cls(self, name=name, options=options, user=user, schedule=schedule, **kwargs)
        self.agents[name] = agent
        self._locks[name] = asyncio.Lock()
        for source in sources or []:
            self.receivers.setdefault(source, []).append(name)
        return agent

    async def remove_agent(self, name):
        """Forget an agent: no schedule, no inbound events, no dry runs."""
        agent = self.agents.pop(name, None)
        self._locks.pop(name, None)
        self.scheduler.remove_task(name)
        for source in list(self.receivers):
            self.receivers[source] = [r for r in self.receivers[source] if r != name]
            if not self.receivers[source]:
                del self.receivers[source]
        if agent is not None:
            await agent.on_unload()

    async def load_agents(self):
        """Instantiate and schedule every agent listed under `agents:` in config.yaml.

        An agent that fails validation or cannot be scheduled is removed again,
        so it never runs on a schedule or on events from its sources.
        """
        loaded = []
        for entry in self.config.get('agents', []) or []:
            name = entry.get('name')
            try:
                agent = self.add_agent(
                    name,
                    skill=entry.get('skill', 'reddit'),
                    options=entry.get('options'),
                    user=entry.get('user', 'default'),
                    schedule=entry.get('schedule'),
                    sources=entry.get('sources'),
                )
                await agent.on_load()
                await self.schedule_agent(agent)
                loaded.append(name)
            except ConfigurationError as e:
                await self.remove_agent(name)
                for error in e.errors:
                    await self.log(f"Agent {name} not scheduled: {error}", priority=1)
            except (ImportError, ValueError) as e:
                await self.remove_agent(name)
                await self.log(f"Agent {name} failed to load: {e}", priority=1)
        if loaded:
            await self.log(f"Agents loaded: {', '.join(loaded)}", priority=2)
        return loaded

    async def schedule_agent(self, agent):
        errors = agent.validate_options()
        if errors:
            raise ConfigurationError(errors)

        async def _tick():
            await self.run_check(agent)

        await self.scheduler.add_schedule(agent.name, agent.schedule, _tick)

    async def _run(self, agent, coro_fn, *args):
        errors = agent.validate_options()
        if errors:
            agent.last_run_had_error = True
            await self.log(f"Not running, invalid options: {'; '.join(str(e) for e in errors)}",
                           priority=1, component=agent.name)
            return False
        # at most one run in flight per agent
        async with self._locks.setdefault(agent.name, asyncio.Lock()):
            try:
                await coro_fn(*args)
                return True
            except Exception as e:
                agent.last_run_had_error = True
                await self.log(f"Run failed: {e!r}", priority=1, component=agent.name)
                return False

    async def run_check(self, agent):
        return await self._run(agent, agent.check)

    async def run_receive(self, agent, events):
        return await self._run(agent, agent.receive, events)

    async def dry_run(self, name, event=None):
        agent = self.agents[name]
        async with self._locks.setdefault(name, asyncio.Lock()):
            return await agent.dry_run(event)

    # ── Logging ──────────────────────────────────────────────────────

    def _append(self, filename, line):
        """Append one line under logs/, rolling the file over to <name>.1 when it grows too big."""
        os.makedirs(self.logs_dir, exist_ok=True)
        path = os.path.join(self.logs_dir, filename)
        if os.path.exists(path) and os.path.getsize(path) > LOG_MAX_BYTES:
            os.replace(path, path + '.1')
        with open(path, 'a', encoding='utf-8') as f:
            f.write(line + '\n')

    async def log(self, message, priority=3, component=None):
        """Write a run-log line to system_log.txt and, for a component, to its
        daily JSON log as well.

        priority 1 marks an error (level ERROR in the JSON log).
        """
        now = datetime.now()
        label = component or "Core"
        line = f"[{now:%H:%M:%S}] [{label}] {message}"
        print(line)
        self._append('system_log.txt', line)
        if component:
            slug = component.lower().replace(' ', '_')
            self._append(f"{slug}_{now:%Y-%m-%d}.log", json.dumps({
                "ts": now.isoformat(timespec='seconds'),
                "level": "ERROR" if priority == 1 else "INFO",
                "component": component,
                "msg": str(message),
            }))

    # ── Lifecycle ────────────────────────────────────────────────────

    async def shutdown(self):
        """Graceful shutdown: stop the scheduler, unload agents, cancel leftover tasks."""
        if not self.running:
            return
        self.running = False
        await self.scheduler.stop()
        for agent in self.agents.values():
            try:
                await agent.on_unload()
            except Exception as e:
                print(f"[Core] {agent.name} unload failed: {e!r}")

        tasks = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        print(f"[{datetime.now():%H:%M:%S}] [Core] Shut down cleanly.")

    async def main_loop(self):
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except NotImplementedError:
                # Windows event loops: fall back to plain signal handlers
                signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop.set))

        system = self.config['system']
        await self.log(f"Starting {system.get('name')} v{system.get('version')}", priority=2)
        await self.load_agents()
        asyncio.create_task(self.scheduler.run())
        for agent in self.agents.values():
            asyncio.create_task(agent.run())

        await stop.wait()
        await self.shutdown()


def main():
    config_path = sys.argv[1] if len(sys.argv) > 1 else 'config.yaml'
    core = AgentCore(config_path)
    try:
        asyncio.run(core.main_loop())
    except (KeyboardInterrupt, SystemExit):
        pass


if __name__ == "__main__":
    main()
