import json
import logging
import os
import re
from dataclasses import dataclass
from typing import Optional

import config

logger = logging.getLogger(__name__)

_ID_PATTERN = re.compile(r"client-(\d+)")


@dataclass(frozen=True)
class ClientProfile:
    id: str
    name: str


def _client_code(index: int) -> str:
    return str(index).zfill(3)


def default_clients(count: int = None) -> list[ClientProfile]:
    if count is None:
        count = config.DEFAULT_CLIENT_COUNT
    return [
        ClientProfile(id=f"client-{_client_code(i)}", name=f"Client {_client_code(i)}")
        for i in range(1, count + 1)
    ]


def load_clients(path: str = None) -> list[ClientProfile]:
    """
    Load the roster from JSON. Invalid entries are ignored; a missing,
    unreadable or empty file gives the default roster.
    """
    path = path or config.CLIENTS_FILE
    if not os.path.exists(path):
        return default_clients()

    try:
        with open(path, "r") as f:
            parsed = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read client roster %s: %s", path, e)
        return default_clients()

    if not isinstance(parsed, list):
        return default_clients()

    valid = [
        ClientProfile(id=c["id"], name=c["name"])
        for c in parsed
        if isinstance(c, dict) and isinstance(c.get("id"), str) and isinstance(c.get("name"), str)
    ]
    return valid or default_clients()


def save_clients(clients: list, path: str = None):
    path = path or config.CLIENTS_FILE
    with open(path, "w") as f:
        json.dump([{"id": c.id, "name": c.name} for c in clients], f, indent=2)


class ClientRoster:
    """Ordered, externally supplied list of clients. Persisted on every change."""

    def __init__(self, clients: list = None, path: str = None):
        self.path = path or config.CLIENTS_FILE
        self._clients = list(clients) if clients is not None else load_clients(self.path)

    @property
    def clients(self) -> list[ClientProfile]:
        return list(self._clients)

    @property
    def ids(self) -> list[str]:
        return [c.id for c in self._clients]

    def name_of(self, client_id: str) -> str:
        for c in self._clients:
            if c.id == client_id:
                return c.name
        return client_id

    def add(self, name: Optional[str] = None) -> ClientProfile:
        """Append a client with the next free `client-NNN` id."""
        max_idx = 0
        for c in self._clients:
            match = _ID_PATTERN.fullmatch(c.id)
            if match:
                max_idx = max(max_idx, int(match.group(1)))

        code = _client_code(max_idx + 1)
        trimmed = (name or "").strip()
        profile = ClientProfile(id=f"client-{code}", name=trimmed or f"Client {code}")

        self._clients.append(profile)
        save_clients(self._clients, self.path)
        logger.info("Added client %s", profile.id)
        return profile

    def remove(self, client_id: str) -> bool:
        for i, c in enumerate(self._clients):
            if c.id == client_id:
                del self._clients[i]
                save_clients(self._clients, self.path)
                logger.info("Removed client %s", client_id)
                return True
        return False
