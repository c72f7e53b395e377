# Reddit Agent Host: per-agent memory blob
import json
import os


class AgentMemory:
    """Small JSON state blob scoped to one agent instance.

    Written through on every set() so the state survives restarts.
    """

    def __init__(self, state_dir, agent_name):
        self.agent_name = agent_name
        slug = agent_name.lower().replace(' ', '_')
        self.path = os.path.join(state_dir, f"memory_{slug}.json")
        self.data = self.load()

    def load(self):
        if os.path.exists(self.path):
            with open(self.path, 'r', encoding='utf-8') as f:
                return json.load(f)
        return {}

    def save(self):
        os.makedirs(os.path.dirname(self.path) or '.', exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(self.data, f, indent=2)

    def get(self, key, default=None):
        return self.data.get(key, default)

    def set(self, key, value):
        self.data[key] = value
        self.save()
