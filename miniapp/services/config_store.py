"""
Configuration store
Owns the single in-memory catalog snapshot and keeps it in sync with the
remote endpoint (source of truth) and the local DuckDB cache

Load: remote first, cache on any remote failure, never mixed.
Save: cache first (required), remote best effort; a failed remote write is a
degraded result, the cache stays authoritative until the next remote success.
Saves are serialized so that two concurrent editors cannot lose an update.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel

from ..core.database import SnapshotCache
from ..core.exceptions import (
    DatabaseError,
    PersistenceError,
    RemoteConfigError,
    SnapshotUnavailableError,
    ValidationError,
)
from ..models.catalog import Snapshot
from .remote_config import RemoteConfigClient, RemoteStatus

logger = logging.getLogger(__name__)


class LoadSource(str, Enum):
    REMOTE = "remote"
    CACHE = "cache"


class SaveOutcome(str, Enum):
    FULLY_SAVED = "fully_saved"
    SAVED_LOCALLY = "saved_locally"
    NOTHING_SAVED = "nothing_saved"


OUTCOME_MESSAGES = {
    SaveOutcome.FULLY_SAVED: "Configuration fully saved",
    SaveOutcome.SAVED_LOCALLY: "Configuration saved locally only, the server copy was not updated",
    SaveOutcome.NOTHING_SAVED: "Nothing saved",
}


class SaveResult(BaseModel):
    """Where a save landed"""
    cache_ok: bool
    remote_ok: bool
    remote_status: RemoteStatus
    detail: Optional[str] = None

    @property
    def outcome(self) -> SaveOutcome:
        if not self.cache_ok:
            return SaveOutcome.NOTHING_SAVED
        if self.remote_ok:
            return SaveOutcome.FULLY_SAVED
        return SaveOutcome.SAVED_LOCALLY

    @property
    def degraded(self) -> bool:
        return self.outcome == SaveOutcome.SAVED_LOCALLY

    @property
    def message(self) -> str:
        message = OUTCOME_MESSAGES[self.outcome]
        if self.remote_status == RemoteStatus.NOT_PERSISTED:
            message += " (server storage is read-only)"
        return message


class ConfigStore:
    """Owner of the catalog snapshot"""

    def __init__(self, cache: SnapshotCache, remote: Optional[RemoteConfigClient] = None):
        self.cache = cache
        self.remote = remote
        self._snapshot: Optional[Snapshot] = None
        self._save_lock: Optional[asyncio.Lock] = None
        self.last_load_source: Optional[LoadSource] = None

    @property
    def snapshot(self) -> Snapshot:
        """Current in-memory snapshot"""
        if self._snapshot is None:
            raise SnapshotUnavailableError("Configuration has not been loaded")
        return self._snapshot

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    def replace(self, snapshot: Snapshot):
        """Swap in an edited snapshot in one step (no persistence)"""
        self._snapshot = snapshot

    async def load(self) -> Snapshot:
        """
        Load the snapshot: remote first, cache as fallback

        Raises:
            SnapshotUnavailableError: neither source yields a valid snapshot
        """
        snapshot = await self._load_remote()
        source = LoadSource.REMOTE
        if snapshot is None:
            snapshot = self._load_cache()
            source = LoadSource.CACHE
        if snapshot is None:
            raise SnapshotUnavailableError("Unable to load the configuration from the server or the local cache")

        self._snapshot = snapshot
        self.last_load_source = source
        logger.info("Configuration loaded from %s", source.value)
        return snapshot

    async def _load_remote(self) -> Optional[Snapshot]:
        if self.remote is None:
            return None
        try:
            data = await self.remote.fetch()
            return Snapshot.from_wire(data)
        except (RemoteConfigError, ValidationError) as e:
            logger.warning("Remote configuration unavailable, falling back to cache: %s", e.message)
            return None

    def _load_cache(self) -> Optional[Snapshot]:
        try:
            payload = self.cache.read()
        except DatabaseError as e:
            logger.warning("Local cache unreadable: %s", e.message)
            return None
        if payload is None:
            return None
        try:
            return Snapshot.from_json(payload)
        except ValidationError as e:
            logger.warning("Discarding malformed cached configuration: %s", e.message)
            try:
                self.cache.clear()
            except DatabaseError as clear_error:
                logger.warning("Unable to clear the local cache: %s", clear_error.message)
            return None

    async def save(self, snapshot: Optional[Snapshot] = None) -> SaveResult:
        """
        Persist the whole snapshot: cache first, then remote

        Args:
            snapshot: replaces the in-memory snapshot before saving; defaults
                to the current in-memory snapshot

        Returns:
            SaveResult, degraded when only the cache write succeeded

        Raises:
            ValidationError: the snapshot is invalid, nothing written
            PersistenceError: the cache write failed, nothing saved
        """
        if self._save_lock is None:
            # bound to the loop running the first save
            self._save_lock = asyncio.Lock()
        async with self._save_lock:
            # Queued saves persist whatever is current when they get the lock
            candidate = snapshot if snapshot is not None else self.snapshot
            validated = candidate.revalidated()
            payload = validated.to_json()
            self._snapshot = validated

            try:
                self.cache.write(payload)
            except DatabaseError as e:
                logger.error("Local cache write failed: %s", e.message)
                raise PersistenceError(
                    f"{OUTCOME_MESSAGES[SaveOutcome.NOTHING_SAVED]}: {e.message}",
                    details={"outcome": SaveOutcome.NOTHING_SAVED.value},
                )

            result = await self._push_remote(validated)
            if result.degraded:
                logger.warning("Configuration saved locally only: %s", result.detail)
            else:
                logger.info("Configuration saved (%s)", result.outcome.value)
            return result

    async def commit(self, actor: str, action: str, detail: Dict[str, Any]) -> SaveResult:
        """Save after an operator edit and record the edit in the action log"""
        result = await self.save()
        try:
            self.cache.log_action(actor, action, {**detail, "outcome": result.outcome.value})
        except DatabaseError as e:
            logger.warning("Could not record %s in the action log: %s", action, e.message)
        logger.info("%s by %s: %s", action, actor, result.outcome.value)
        return result

    async def _push_remote(self, snapshot: Snapshot) -> SaveResult:
        if self.remote is None:
            return SaveResult(cache_ok=True, remote_ok=False, remote_status=RemoteStatus.DISABLED,
                              detail="no remote endpoint configured")
        try:
            status = await self.remote.push(snapshot.to_wire())
        except RemoteConfigError as e:
            return SaveResult(cache_ok=True, remote_ok=False, remote_status=RemoteStatus.FAILED, detail=e.message)

        if status == RemoteStatus.OK:
            return SaveResult(cache_ok=True, remote_ok=True, remote_status=status)
        return SaveResult(cache_ok=True, remote_ok=False, remote_status=status,
                          detail="remote storage did not persist the configuration")
