"""
Reddit Agent Host - event store.

Events emitted by agents are kept in memory (for liveness checks and for
routing to receivers) and appended to events.jsonl so they survive restarts.
"""

import json
import os
import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Event:
    agent: str
    payload: Dict[str, Any]
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    created_at: float = field(default_factory=time.time)


class EventStore:
    def __init__(self, state_dir, max_events=5000):
        self.path = os.path.join(state_dir, "events.jsonl")
        self.max_events = max_events
        self.events: List[Event] = self._load()

    def _load(self):
        events = []
        if not os.path.exists(self.path):
            return events
        with open(self.path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if line:
                    events.append(Event(**json.loads(line)))
        return events[-self.max_events:]

    def add(self, agent_name, payload) -> Event:
        event = Event(agent=agent_name, payload=payload)
        self.events.append(event)
        if len(self.events) > self.max_events:
            self.events = self.events[-self.max_events:]
        os.makedirs(os.path.dirname(self.path) or '.', exist_ok=True)
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(json.dumps(asdict(event)) + '\n')
        return event

    def for_agent(self, agent_name) -> List[Event]:
        return [e for e in self.events if e.agent == agent_name]

    def latest(self, agent_name) -> Optional[Event]:
        for event in reversed(self.events):
            if event.agent == agent_name:
                return event
        return None

    def created_within(self, agent_name, days, now=None) -> bool:
        """True when `agent_name` emitted an event in the last `days` days."""
        latest = self.latest(agent_name)
        if latest is None:
            return False
        now = time.time() if now is None else now
        return now - latest.created_at <= days * 86400
