"""
Hot-reloading configuration manager.

The current Config is replaced whole, only after it validates. A reload
callback gets to veto a candidate before it is published: if it raises,
the previous Config stays current and the error goes back to the caller.

File watching uses a watchdog observer on the config file's directory so
that editors which save via rename are still picked up. Events are
debounced; the timer only raises a pending flag, and a single consumer
thread turns that flag into one reload.
"""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import pydantic
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from tcexporter.config.loaders import load_file
from tcexporter.config.models import Config
from tcexporter.errors import ConfigError, ConfigValidationError
from tcexporter.sync import RWLock

logger = logging.getLogger(__name__)

ReloadCallback = Callable[[Config], None]

DEFAULT_RELOAD_DELAY = 2.0


class _ConfigFileHandler(FileSystemEventHandler):
    """Forwards write/create/rename-onto events for one file to the manager."""

    def __init__(self, manager: "ConfigManager"):
        self._manager = manager

    def _matches(self, path: Union[str, bytes]) -> bool:
        return os.path.abspath(os.fsdecode(path)) == self._manager.config_path

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self._manager.schedule_reload()

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self._manager.schedule_reload()

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.dest_path):
            self._manager.schedule_reload()


class ConfigManager:

    def __init__(self, config_path: Union[str, Path], reload_delay: float = DEFAULT_RELOAD_DELAY):
        self.config_path = os.path.abspath(os.fspath(config_path))
        self.reload_delay = reload_delay

        self._lock = RWLock()
        self._config = Config()
        self._callback: Optional[ReloadCallback] = None
        self._reload_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._reload_count = 0
        self._last_reload: Optional[datetime] = None

        self._observer: Optional[Any] = None
        self._timer: Optional[threading.Timer] = None
        self._timer_lock = threading.Lock()
        self._pending = threading.Event()
        self._stopping = threading.Event()
        self._consumer: Optional[threading.Thread] = None

    # -- current config --

    def get_config(self) -> Config:
        with self._lock.read():
            return self._config

    def set_reload_callback(self, callback: Optional[ReloadCallback]) -> None:
        with self._lock.write():
            self._callback = callback

    def _read_candidate(self) -> Config:
        data = load_file(Path(self.config_path))
        try:
            return Config.model_validate(data)
        except pydantic.ValidationError as e:
            raise ConfigValidationError(f"invalid config {self.config_path}: {e}") from e

    def load_config(self) -> Config:
        """Load and validate the file, then make it current. No callback."""
        with self._reload_lock:
            candidate = self._read_candidate()
            with self._lock.write():
                self._config = candidate
        logger.info("Loaded config from %s", self.config_path)
        return candidate

    def reload(self) -> Config:
        """Re-read the file and swap it in once the callback accepts it.

        Readers keep seeing the previous Config until the callback returns.
        If it raises, the candidate is dropped and the error propagates.
        """
        with self._reload_lock:
            candidate = self._read_candidate()

            with self._lock.read():
                callback = self._callback

            if callback is not None:
                try:
                    callback(candidate)
                except Exception:
                    logger.error("Reload callback rejected %s, keeping previous config", self.config_path)
                    raise

            with self._lock.write():
                self._config = candidate

            with self._stats_lock:
                self._reload_count += 1
                self._last_reload = datetime.now(timezone.utc)

        logger.info("Reloaded config from %s", self.config_path)
        return candidate

    @property
    def reload_count(self) -> int:
        with self._stats_lock:
            return self._reload_count

    @property
    def last_reload(self) -> Optional[datetime]:
        with self._stats_lock:
            return self._last_reload

    def stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            return {
                "config_path": self.config_path,
                "reload_count": self._reload_count,
                "last_reload": self._last_reload.isoformat() if self._last_reload else None,
                "watching": self.is_watching(),
            }

    # -- watching --

    def is_watching(self) -> bool:
        return self._observer is not None and not self._stopping.is_set()

    def start_watching(self) -> None:
        if self._observer is not None:
            return

        directory = os.path.dirname(self.config_path)
        observer = Observer()
        observer.schedule(_ConfigFileHandler(self), directory, recursive=False)
        try:
            observer.start()
        except OSError as e:
            raise ConfigError(f"failed to watch config directory {directory}: {e}") from e

        self._observer = observer
        self._consumer = threading.Thread(target=self._reload_loop, name="config-reload", daemon=True)
        self._consumer.start()
        logger.info("Watching %s for changes", self.config_path)

    def schedule_reload(self) -> None:
        """(Re)start the debounce timer. Called for each matching file event."""
        if self._stopping.is_set():
            return
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.reload_delay, self._pending.set)
            self._timer.daemon = True
            self._timer.start()

    def _reload_loop(self) -> None:
        while True:
            self._pending.wait()
            if self._stopping.is_set():
                return
            self._pending.clear()
            try:
                self.reload()
            except Exception as e:
                logger.error("Config reload failed, keeping previous config: %s", e)

    def stop_watching(self) -> None:
        if self._stopping.is_set():
            return
        self._stopping.set()

        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

        self._pending.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
        if self._consumer is not None and self._consumer is not threading.current_thread():
            self._consumer.join()
        logger.debug("Stopped watching %s", self.config_path)
