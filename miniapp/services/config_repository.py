"""
Configuration file repository
Durable storage behind the /config endpoint: one JSON document on disk

Writes go to a temporary file in the same directory and are swapped in with
os.replace, so readers see either the old or the new document.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from ..config.settings import Settings, settings as default_settings
from ..core.exceptions import ConfigNotFoundError, ConfigNotPersistedError, PersistenceError
from ..models.catalog import Snapshot

logger = logging.getLogger(__name__)


class ConfigRepository:
    """Stored snapshot document"""

    def __init__(self, path: Optional[str] = None, settings: Optional[Settings] = None):
        settings = settings or default_settings
        self.path = Path(path or settings.config_file_path)
        self._lock = threading.Lock()

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> Dict[str, Any]:
        """
        Stored snapshot as a wire dict

        Raises:
            ConfigNotFoundError: nothing stored yet
            PersistenceError: the stored file cannot be read or parsed
        """
        with self._lock:
            try:
                text = self.path.read_text(encoding="utf-8")
            except FileNotFoundError:
                raise ConfigNotFoundError("Configuration not found")
            except OSError as e:
                logger.error("Cannot read %s: %s", self.path, e)
                raise PersistenceError("Error reading configuration", details={"reason": str(e)})

        try:
            return json.loads(text)
        except ValueError as e:
            logger.error("Stored configuration %s is not valid JSON: %s", self.path, e)
            raise PersistenceError("Error reading configuration", details={"reason": str(e)})

    def write(self, snapshot: Snapshot):
        """
        Replace the stored document

        Raises:
            ConfigNotPersistedError: storage is not writable, nothing changed
        """
        text = snapshot.to_json()
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            except OSError as e:
                logger.warning("Configuration storage is not writable: %s", e)
                raise ConfigNotPersistedError(
                    "Configuration validated but could not be persisted",
                    details={"reason": str(e)},
                )

            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(text)
                os.replace(tmp_name, self.path)
            except OSError as e:
                Path(tmp_name).unlink(missing_ok=True)
                logger.warning("Configuration write to %s failed: %s", self.path, e)
                raise ConfigNotPersistedError(
                    "Configuration validated but could not be persisted",
                    details={"reason": str(e)},
                )
        logger.info("Configuration stored at %s", self.path)

    def check_writable(self) -> bool:
        """Whether the storage directory accepts writes"""
        directory = self.path.parent
        if directory.exists():
            return os.access(directory, os.W_OK)
        return os.access(next((p for p in directory.parents if p.exists()), Path(".")), os.W_OK)
