"""
Telemetry store.

Holds the site population for a single client, stamps every change with a
monotonically increasing version and notifies subscribers. State can be
saved to and restored from a key-value storage collaborator that treats the
payload as an opaque string.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union
import json
import logging
import time

from .config import StoreConfig
from .events import EventType, StoreEvent
from .exceptions import PersistenceError, SiteNotFoundError, ValidationError
from .models import Site

Subscriber = Callable[[StoreEvent], None]


class KeyValueStorage(ABC):
    """Persisted key-value collaborator."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Get the value stored under key, or None."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value under key."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key if present."""
        pass


class InMemoryStorage(KeyValueStorage):
    """Process-local storage."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage(KeyValueStorage):
    """Storage backed by a single JSON file mapping keys to values."""

    def __init__(self, file_path: Union[str, Path]):
        self.file_path = Path(file_path)

    def _read(self) -> Dict[str, str]:
        if not self.file_path.exists():
            return {}
        try:
            with open(self.file_path, 'r') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Cannot read storage file {self.file_path}: {e}")

    def _write(self, data: Dict[str, str]) -> None:
        try:
            with open(self.file_path, 'w') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise PersistenceError(f"Cannot write storage file {self.file_path}: {e}")

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class TelemetryStore:
    """Observable container of the site population."""

    def __init__(
        self,
        storage: Optional[KeyValueStorage] = None,
        config: Optional[StoreConfig] = None
    ):
        """Initialize store, defaulting to a JSON file when a path is configured."""
        self.config = config or StoreConfig()
        if storage is None:
            storage = (
                JsonFileStorage(self.config.storage_path)
                if self.config.storage_path else InMemoryStorage()
            )
        self.storage = storage
        self.version = 0
        self._sites: List[Site] = []
        self._subscribers: List[Subscriber] = []
        self.logger = logging.getLogger("sitehealth.store")

    @property
    def sites(self) -> List[Site]:
        """Current sites. Mutate in place, then call ``mark_changed``."""
        return self._sites

    def __len__(self) -> int:
        return len(self._sites)

    def get_site(self, site_id: str) -> Site:
        """Get a site by id."""
        for site in self._sites:
            if site.id == site_id:
                return site
        raise SiteNotFoundError(f"Site {site_id} not found")

    def load(self, sites: List[Site]) -> StoreEvent:
        """Replace the whole population."""
        self._sites = list(sites)
        return self.mark_changed(EventType.SITES_LOADED, [site.id for site in self._sites])

    def add_site(self, site: Site) -> StoreEvent:
        """Add a site."""
        self._sites.append(site)
        return self.mark_changed(EventType.SITE_ADDED, [site.id])

    def update_site(self, site: Site) -> StoreEvent:
        """Replace the stored site that has the same id."""
        for index, existing in enumerate(self._sites):
            if existing.id == site.id:
                self._sites[index] = site
                return self.mark_changed(EventType.SITE_UPDATED, [site.id])
        raise SiteNotFoundError(f"Site {site.id} not found")

    def remove_site(self, site_id: str) -> StoreEvent:
        """Remove a site by id."""
        site = self.get_site(site_id)
        self._sites.remove(site)
        return self.mark_changed(EventType.SITE_REMOVED, [site_id])

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a change listener.

        Args:
            callback: Function called with every ``StoreEvent``

        Returns:
            Function that removes the listener again
        """
        self._subscribers.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def mark_changed(
        self,
        event_type: EventType,
        site_ids: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> StoreEvent:
        """Bump the version and notify subscribers of a change."""
        self.version += 1
        event = StoreEvent(
            type=event_type,
            timestamp=datetime.now(),
            version=self.version,
            site_ids=list(site_ids) if site_ids is not None else [s.id for s in self._sites],
            details=details
        )
        self.logger.debug(f"Store v{self.version}: {event_type.value}")

        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                self.logger.error(f"Store subscriber failed: {e}", exc_info=True)

        if self.config.persist_on_change and event_type != EventType.SITES_RESTORED:
            self.persist()

        return event

    def persist(self) -> None:
        """Save the current state to storage."""
        payload = {
            "version": self.version,
            "saved_at": datetime.now().isoformat(),
            "sites": [site.to_dict() for site in self._sites]
        }
        self.storage.set(self.config.storage_key, json.dumps(payload))
        self.logger.info(f"Persisted {len(self._sites)} sites at v{self.version}")

    def restore(self) -> bool:
        """
        Restore state from storage.

        Returns:
            True if a saved state was found and loaded
        """
        if self.config.fetch_latency_seconds > 0:
            time.sleep(self.config.fetch_latency_seconds)

        raw = self.storage.get(self.config.storage_key)
        if raw is None:
            return False

        try:
            payload = json.loads(raw)
            sites = [Site.from_dict(data) for data in payload["sites"]]
        except (ValueError, KeyError, TypeError, ValidationError) as e:
            raise PersistenceError(f"Stored state under {self.config.storage_key} is corrupt: {e}")

        self._sites = sites
        self.version = max(self.version, int(payload.get("version", 0)))
        self.mark_changed(EventType.SITES_RESTORED, [site.id for site in sites])
        self.logger.info(f"Restored {len(sites)} sites")
        return True

    def clear_persisted(self) -> None:
        self.storage.delete(self.config.storage_key)
