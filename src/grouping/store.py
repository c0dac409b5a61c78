"""
Contact store collaborators.

The engine needs two operations from persistent storage: read the contacts
of a session and write back the clusters it produced.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Protocol, Sequence, Union

from src.schemas.domain import Cluster, ContactLocation

logger = logging.getLogger(__name__)


class ContactStore(Protocol):
    def load_contacts(self, session_id: str) -> List[ContactLocation]:
        ...

    def save_clusters(self, session_id: str, clusters: Sequence[Cluster]) -> None:
        ...


class InMemoryContactStore:
    """Dictionary-backed store for tests and embedding."""

    def __init__(self, contacts: Dict[str, Sequence[ContactLocation]] | None = None):
        self._contacts: Dict[str, List[ContactLocation]] = {
            k: list(v) for k, v in (contacts or {}).items()
        }
        self.saved: Dict[str, List[Cluster]] = {}

    def add_contacts(self, session_id: str, contacts: Sequence[ContactLocation]) -> None:
        self._contacts.setdefault(session_id, []).extend(contacts)

    def load_contacts(self, session_id: str) -> List[ContactLocation]:
        return list(self._contacts.get(session_id, []))

    def save_clusters(self, session_id: str, clusters: Sequence[Cluster]) -> None:
        self.saved[session_id] = list(clusters)


def load_contacts_file(path: Union[str, Path]) -> List[ContactLocation]:
    """
    Read contacts from a JSON file.

    The document is either a list of contact records or an object with a
    ``contacts`` list. Records without coordinates are skipped with a warning.
    """
    with open(path, "r", encoding="utf-8") as f:
        data: Any = json.load(f)

    records = data.get("contacts", []) if isinstance(data, dict) else data
    if not isinstance(records, list):
        raise ValueError(f"{path}: expected a list of contacts")

    contacts: List[ContactLocation] = []
    for record in records:
        try:
            contacts.append(ContactLocation.from_dict(record))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping contact record without usable location: %s", e)
    return contacts


class JsonContactStore:
    """
    One directory per session under ``root``:

        <root>/<session_id>/contacts.json
        <root>/<session_id>/clusters.json
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def _session_dir(self, session_id: str) -> Path:
        if not session_id or "/" in session_id or session_id in (".", ".."):
            raise ValueError(f"Invalid session id: {session_id!r}")
        return self.root / session_id

    def load_contacts(self, session_id: str) -> List[ContactLocation]:
        path = self._session_dir(session_id) / "contacts.json"
        if not path.exists():
            return []
        return load_contacts_file(path)

    def save_clusters(self, session_id: str, clusters: Sequence[Cluster]) -> None:
        directory = self._session_dir(session_id)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / "clusters.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"clusters": [c.to_dict() for c in clusters]}, f, indent=2)
        logger.info("Wrote %d clusters to %s", len(clusters), path)
