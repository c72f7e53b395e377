# Reddit Agent Host: named credential store
import os

import yaml


class CredentialStore:
    """Named string credentials, scoped per user, kept in credentials.yaml.

    Layout on disk:
        <user>:
          <credential name>: <value>

    Every write is a read-modify-write of the file so values stored by
    another process (or by hand) are never lost.
    """

    def __init__(self, path):
        self.path = path
        self.data = self._read()

    def _read(self):
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                return yaml.safe_load(f) or {}
        except FileNotFoundError:
            return {}

    def get(self, user, name, default=None):
        return (self.data.get(user) or {}).get(name, default)

    def set(self, user, name, value):
        on_disk = self._read()
        on_disk.setdefault(user, {})
        on_disk[user][name] = value
        os.makedirs(os.path.dirname(self.path) or '.', exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            yaml.dump(on_disk, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
        self.data = on_disk

    def scoped(self, user):
        return ScopedCredentials(self, user)


class ScopedCredentials:
    """The get/set view of the store one agent sees."""

    def __init__(self, store, user):
        self.store = store
        self.user = user

    def get(self, name, default=None):
        return self.store.get(self.user, name, default)

    def set(self, name, value):
        self.store.set(self.user, name, value)
