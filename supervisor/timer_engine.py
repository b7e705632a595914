"""Timer engine facade bridging a user interface and the TimerScheduler.

The engine wires configuration, logging, the message bus, the scheduler
and the audio and persistence collaborators. A UI dispatches intents
through ``start``, ``pause``, ``resume`` and ``reset`` and reads
``runtime_state``; it never touches run states directly.
"""

import logging
from typing import Optional, Union

from audio.audio_manager import AudioManager
from audio.sound_library import SoundLibrary
from common.message_bus import MessageBus
from common.timer_graph import TimerGraph
from common.timer_node import TimerNode
from common.timer_types import TimerConfig, TimerState
from persistence.persistence_service import PersistenceService, StoredTimer
from supervisor.clock import create_clock
from supervisor.logging_config import configure_logging
from supervisor.timer_engine_config import TimerEngineConfig
from supervisor.timer_scheduler import TimerScheduler

logger = logging.getLogger("supervisor")

TimerSource = Union[TimerConfig, TimerGraph, TimerNode]


class TimerEngine:
    """Owns one scheduler and the timer tree currently loaded into it."""

    config: TimerEngineConfig
    message_bus: Optional[MessageBus] = None
    scheduler: Optional[TimerScheduler] = None
    audio_manager: Optional[AudioManager] = None
    persistence: Optional[PersistenceService] = None
    graph: Optional[TimerGraph] = None

    def __init__(
        self,
        config: Optional[TimerEngineConfig] = None,
        config_file: Optional[str] = None,
        setup_logging: bool = False,
    ):
        """Initializes the engine and its components.

        Args:
            config: Engine configuration; defaults apply when omitted.
            config_file: YAML file to load the configuration from instead.
            setup_logging: Whether to apply the logging configuration.
        """
        if config_file:
            config = TimerEngineConfig.from_file(config_file)
        self.config = config or TimerEngineConfig()
        self.graph = None

        if setup_logging:
            configure_logging(self.config.logging)

        self.initialize_components()

    def initialize_components(self):
        """Initializes the message bus, scheduler and collaborators."""
        logger.info("Initializing timer engine components...")

        self.message_bus = MessageBus()
        self.message_bus.start()

        scheduler_config = self.config.scheduler
        self.scheduler = TimerScheduler(
            message_bus=self.message_bus,
            clock=create_clock(scheduler_config.clock, scheduler_config.tick_ms),
            max_parallel_workers=scheduler_config.max_parallel_workers,
        )

        if self.config.audio.enabled:
            self.audio_manager = AudioManager(
                sound_library=SoundLibrary(self.config.audio.sounds)
            )
            self.audio_manager.attach(self.message_bus)

        persistence_config = self.config.persistence
        if persistence_config.enabled:
            self.persistence = PersistenceService(
                storage_dir=persistence_config.storage_dir,
                key_prefix=persistence_config.key_prefix,
            )
            if persistence_config.autosave:
                self.persistence.attach(self.message_bus, lambda: self.graph)

        logger.info("Timer engine initialization complete.")

    @property
    def runtime_state(self) -> TimerState:
        return self.scheduler.get_runtime_state()

    def load_graph(self, source: TimerSource) -> TimerGraph:
        """Make ``source`` the current timer tree.

        Args:
            source: A config tree, a graph or a root node.

        Returns:
            TimerGraph: The graph now loaded.

        Raises:
            StructuralError: If the tree is malformed.
            RuntimeError: If a run is in progress.
        """
        if self.scheduler.get_runtime_state() != TimerState.IDLE:
            raise RuntimeError("Cannot replace the timer tree while a run is active")

        self.graph = _as_graph(source)
        logger.info(
            f"Loaded timer '{self.graph.root.id}' with {self.graph.node_count()} nodes"
        )
        return self.graph

    def start(self, source: Optional[TimerSource] = None) -> TimerState:
        """Start ``source`` (or the loaded tree). Ignored unless IDLE."""
        if self.scheduler.get_runtime_state() != TimerState.IDLE:
            logger.debug(f"Ignored start while {self.runtime_state.value}")
            return self.runtime_state

        if source is not None:
            self.load_graph(source)
        if self.graph is None:
            raise RuntimeError("No timer tree loaded")

        self.scheduler.start(self.graph.root)
        return self.runtime_state

    def pause(self) -> TimerState:
        self.scheduler.pause()
        return self.runtime_state

    def resume(self) -> TimerState:
        self.scheduler.resume()
        return self.runtime_state

    def reset(self) -> TimerState:
        self.scheduler.reset()
        return self.runtime_state

    def save(self) -> Optional[StoredTimer]:
        """Persist the loaded tree with the current runtime state."""
        if self.persistence is None or self.graph is None:
            return None
        return self.persistence.save_timer(
            self.graph.root.config, self.runtime_state, self.graph.snapshot_run_states()
        )

    def load(self, timer_id: str) -> Optional[StoredTimer]:
        """Load a stored timer and make it the current tree.

        Returns:
            The stored record, or None if no such timer exists.
        """
        if self.persistence is None:
            return None

        stored = self.persistence.load_timer(timer_id)
        if stored is None:
            logger.warning(f"No stored timer with id '{timer_id}'")
            return None

        self.load_graph(stored.config)
        return stored

    def status(self) -> dict:
        """Return a diagnostic snapshot of the engine."""
        return {
            "runtime_state": self.runtime_state.value,
            "timer_id": self.graph.root.id if self.graph else None,
            "nodes": self.graph.to_dict() if self.graph else None,
            "audio_enabled": self.audio_manager is not None,
            "persistence_enabled": self.persistence is not None,
        }

    def shutdown(self):
        """Stop delivering events; the engine can be discarded afterwards."""
        if self.message_bus:
            self.message_bus.stop()
        logger.info("Timer engine stopped.")


def _as_graph(source: TimerSource) -> TimerGraph:
    if isinstance(source, TimerGraph):
        return source
    if isinstance(source, TimerNode):
        return TimerGraph(source)
    if isinstance(source, TimerConfig):
        return TimerGraph.from_config(source)
    raise TypeError(f"Cannot build a timer graph from {type(source).__name__}")
