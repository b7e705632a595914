"""Platform audio backend used by the AudioManager.

The backend is the only layer allowed to touch a real audio device. The
implementation shipped here records and logs every request; a device
backend subclasses AudioService and overrides the three operations.
"""

import logging

from common.timer_types import AudioChannelType

logger = logging.getLogger(__name__)


class AudioService:
    """Side-effect-only audio backend without timer semantics."""

    def __init__(self):
        self.history: list[tuple[str, str, AudioChannelType]] = []

    def play(self, asset: str, channel: AudioChannelType) -> None:
        """Play ``asset`` once on ``channel``."""
        self.history.append(("play", asset, channel))
        logger.info(f"[AudioService.play] {asset} on {channel.value}")

    def play_loop(self, asset: str, channel: AudioChannelType) -> None:
        """Play ``asset`` in a loop on ``channel`` until the channel stops."""
        self.history.append(("play_loop", asset, channel))
        logger.info(f"[AudioService.play_loop] {asset} on {channel.value}")

    def stop_channel(self, channel: AudioChannelType) -> None:
        """Stop every sound playing on ``channel``."""
        self.history.append(("stop_channel", "", channel))
        logger.info(f"[AudioService.stop_channel] {channel.value}")
