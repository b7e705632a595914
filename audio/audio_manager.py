"""Central coordinator for audio playback during a timer run.

Reacts to scheduler transition events: starts a node's background sound
when it starts running, plays its alarm when it completes, silences
backgrounds on pause and restores them on resume. Knows nothing about
scheduling beyond those events.
"""

import logging
import threading
from typing import Optional

from audio.audio_service import AudioService
from audio.sound_library import SoundLibrary, UnknownSoundError
from common.bus_packet import NodeTransition, RuntimeTransition
from common.message_bus import MessageBus, MessageType
from common.timer_types import AudioChannelType, TimerAudioConfig, TimerState

logger = logging.getLogger(__name__)


class AudioManager:
    """Coordinates alarm and background channels without UI awareness.

    Sounds on one channel may overlap; every started asset is tracked per
    channel until the channel is stopped.
    """

    def __init__(
        self,
        audio_service: Optional[AudioService] = None,
        sound_library: Optional[SoundLibrary] = None,
    ):
        """Initialize AudioManager.

        Args:
            audio_service: Backend performing playback.
            sound_library: Registry resolving sound ids to assets.
        """
        self.audio_service = audio_service or AudioService()
        self.sound_library = sound_library or SoundLibrary()
        self._active_channels: dict[AudioChannelType, list[str]] = {}
        self._running_backgrounds: dict[str, TimerAudioConfig] = {}
        self._lock = threading.RLock()

    def play_alarm(self, config: TimerAudioConfig) -> None:
        """Play the alarm bound in ``config``; overlapping alarms are allowed.

        Raises:
            UnknownSoundError: If the alarm id cannot be resolved.
        """
        if not config.alarm_sound_id:
            return

        asset = self.sound_library.resolve(config.alarm_sound_id)
        with self._lock:
            self.audio_service.play(asset, AudioChannelType.ALARM)
            self._register_active(AudioChannelType.ALARM, asset)

    def start_background(self, config: TimerAudioConfig) -> None:
        """Start the background sound bound in ``config``.

        Raises:
            UnknownSoundError: If the background id cannot be resolved.
        """
        if not config.background_sound_id:
            return

        asset = self.sound_library.resolve(config.background_sound_id)
        with self._lock:
            if config.background_loop:
                self.audio_service.play_loop(asset, AudioChannelType.BACKGROUND)
            else:
                self.audio_service.play(asset, AudioChannelType.BACKGROUND)
            self._register_active(AudioChannelType.BACKGROUND, asset)

    def stop_channel(self, channel: AudioChannelType) -> None:
        with self._lock:
            self.audio_service.stop_channel(channel)
            self._active_channels.pop(channel, None)

    def stop_all(self) -> None:
        """Stop every channel that has played since the last stop."""
        with self._lock:
            for channel in list(self._active_channels):
                self.audio_service.stop_channel(channel)
            self._active_channels.clear()

    def active_assets(self, channel: AudioChannelType) -> list[str]:
        with self._lock:
            return list(self._active_channels.get(channel, []))

    def _register_active(self, channel: AudioChannelType, asset: str) -> None:
        self._active_channels.setdefault(channel, []).append(asset)

    # Event subscriptions

    def attach(self, message_bus: MessageBus) -> None:
        """Subscribe to the scheduler's transition events on ``message_bus``."""
        message_bus.subscribe(self, MessageType.NODE_RUNNING, self.handle_node_running)
        message_bus.subscribe(
            self, MessageType.NODE_COMPLETED, self.handle_node_completed
        )
        message_bus.subscribe(
            self, MessageType.RUNTIME_STATE_CHANGED, self.handle_runtime_transition
        )

    def handle_node_running(self, event: NodeTransition) -> None:
        audio = event.config.audio
        if audio is None or not audio.background_sound_id:
            return

        with self._lock:
            self._running_backgrounds[event.node_id] = audio
        try:
            self.start_background(audio)
        except UnknownSoundError as e:
            logger.error(f"Cannot start background for timer '{event.node_id}': {e}")

    def handle_node_completed(self, event: NodeTransition) -> None:
        audio = event.config.audio
        if audio is None:
            return

        with self._lock:
            had_background = self._running_backgrounds.pop(event.node_id, None)
            if had_background is not None:
                self.stop_channel(AudioChannelType.BACKGROUND)
                self._restart_backgrounds()

        try:
            self.play_alarm(audio)
        except UnknownSoundError as e:
            logger.error(f"Cannot play alarm for timer '{event.node_id}': {e}")

    def handle_runtime_transition(self, event: RuntimeTransition) -> None:
        if event.current == TimerState.PAUSED:
            self.stop_channel(AudioChannelType.BACKGROUND)
        elif event.previous == TimerState.PAUSED and event.current == TimerState.RUNNING:
            with self._lock:
                self._restart_backgrounds()
        elif event.current == TimerState.IDLE:
            with self._lock:
                self._running_backgrounds.clear()
                self.stop_all()

    def _restart_backgrounds(self) -> None:
        for node_id, audio in list(self._running_backgrounds.items()):
            try:
                self.start_background(audio)
            except UnknownSoundError as e:
                logger.error(f"Cannot restart background for timer '{node_id}': {e}")
