"""Offline-first persistence of timer configurations and their last state.

Each timer is stored as one YAML document in a local directory, under the
key ``<prefix><timer id>``. Reads never need a network connection.
"""

import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import quote, unquote

import yaml
from pydantic import BaseModel, Field, ValidationError

from common.bus_packet import RuntimeTransition
from common.message_bus import MessageBus, MessageType
from common.timer_graph import TimerGraph
from common.timer_types import TimerConfig, TimerState, utc_now

logger = logging.getLogger(__name__)

STORAGE_PREFIX = "kersh_timer_"
STORAGE_FORMAT_VERSION = 1


class StoredTimer(BaseModel):
    """A persisted timer: its configuration plus the last known state."""

    format_version: int = STORAGE_FORMAT_VERSION
    config: TimerConfig
    state: TimerState = TimerState.IDLE
    node_states: dict[str, TimerState] = Field(default_factory=dict)
    saved_at: datetime = Field(default_factory=utc_now)

    @property
    def timer_id(self) -> str:
        return self.config.id


class PersistenceService:
    """
    Local directory store for timers.

    Writes are atomic per timer (temporary file then rename). Corrupted
    records are logged and treated as absent.
    """

    def __init__(self, storage_dir: str, key_prefix: str = STORAGE_PREFIX):
        """
        Initialize PersistenceService.

        Args:
            storage_dir: Directory holding one file per timer
            key_prefix: Prefix of every storage key
        """
        self.storage_dir = Path(storage_dir)
        self.key_prefix = key_prefix

    def _path_for(self, timer_id: str) -> Path:
        return self.storage_dir / f"{self.key_prefix}{quote(timer_id, safe='')}.yaml"

    def save_timer(
        self,
        config: TimerConfig,
        state: TimerState,
        node_states: Optional[dict[str, TimerState]] = None,
    ) -> StoredTimer:
        """Save a timer configuration and its current state.

        Args:
            config: Root configuration of the timer tree.
            state: Runtime state to record.
            node_states: Optional per-node run states.

        Returns:
            StoredTimer: The record that was written.
        """
        record = StoredTimer(config=config, state=state, node_states=node_states or {})
        payload = yaml.safe_dump(
            record.model_dump(mode="json"), sort_keys=False, allow_unicode=True
        )

        self.storage_dir.mkdir(parents=True, exist_ok=True)
        path = self._path_for(config.id)
        fd, tmp_path = tempfile.mkstemp(dir=self.storage_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.debug(f"Saved timer '{config.id}' ({state.value}) to {path}")
        return record

    def load_timer(self, timer_id: str) -> Optional[StoredTimer]:
        """Load a timer by id.

        Returns:
            The stored record, or None if it is missing or corrupted.
        """
        path = self._path_for(timer_id)
        if not path.exists():
            return None

        try:
            return self._read(path)
        except (OSError, yaml.YAMLError, ValidationError, TypeError) as e:
            logger.error(f"Failed to parse timer {timer_id}: {e}")
            return None

    def load_all_timers(self) -> list[StoredTimer]:
        """Load every timer stored locally, skipping corrupted entries."""
        timers = []
        for path in self._timer_files():
            try:
                timers.append(self._read(path))
            except (OSError, yaml.YAMLError, ValidationError, TypeError) as e:
                logger.warning(f"Ignoring corrupted timer record {path.name}: {e}")
        return timers

    def list_timer_ids(self) -> list[str]:
        prefix_length = len(self.key_prefix)
        return [unquote(path.stem[prefix_length:]) for path in self._timer_files()]

    def delete_timer(self, timer_id: str) -> bool:
        """Delete a timer by id.

        Returns:
            bool: True if a record was removed.
        """
        path = self._path_for(timer_id)
        if not path.exists():
            return False
        path.unlink()
        logger.info(f"Deleted timer '{timer_id}'")
        return True

    def _timer_files(self) -> list[Path]:
        if not self.storage_dir.is_dir():
            return []
        return sorted(self.storage_dir.glob(f"{self.key_prefix}*.yaml"))

    def _read(self, path: Path) -> StoredTimer:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if not isinstance(data, dict):
            raise TypeError(f"expected a mapping, got {type(data).__name__}")
        return StoredTimer.model_validate(data)

    # Event subscriptions

    def attach(
        self,
        message_bus: MessageBus,
        graph_provider: Callable[[], Optional[TimerGraph]],
    ) -> None:
        """Save a snapshot of the current graph on every runtime transition.

        Args:
            message_bus: Bus the scheduler publishes on.
            graph_provider: Returns the graph currently loaded, if any.
        """

        def handle_runtime_transition(event: RuntimeTransition) -> None:
            graph = graph_provider()
            if graph is None:
                return
            try:
                self.save_timer(
                    graph.root.config, event.current, graph.snapshot_run_states()
                )
            except OSError as e:
                logger.error(f"Could not save timer '{graph.root.id}': {e}")

        message_bus.subscribe(
            self, MessageType.RUNTIME_STATE_CHANGED, handle_runtime_transition
        )
