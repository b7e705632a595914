"""Registry mapping logical sound identifiers to concrete audio assets.

Sound identifiers are lowercase kebab-case strings such as
``default-alarm``. Timers reference sounds only by identifier; the
AudioManager resolves them here before asking the backend to play.
"""

import logging
import re
from typing import Optional

from common.timer_node import TimerError

logger = logging.getLogger(__name__)

SOUND_ID_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

DEFAULT_SOUNDS = {
    "default-alarm": "assets/sounds/default-alarm.mp3",
    "default-background": "assets/sounds/default-background.mp3",
}


class UnknownSoundError(TimerError):
    """Raised when a sound identifier has no registered asset."""

    def __init__(self, sound_id: str):
        self.sound_id = sound_id
        super().__init__(f"SoundLibrary: unknown soundId '{sound_id}'")


class SoundLibrary:
    """Deterministic mapping from sound ids to asset references."""

    def __init__(self, sounds: Optional[dict[str, str]] = None):
        """Initialize SoundLibrary with the default sounds plus ``sounds``.

        Args:
            sounds: Additional or overriding id to asset mappings.
        """
        self._sound_map: dict[str, str] = dict(DEFAULT_SOUNDS)
        for sound_id, asset in (sounds or {}).items():
            self.register(sound_id, asset)

    def register(self, sound_id: str, asset: str) -> None:
        """Register or replace the asset for ``sound_id``.

        Raises:
            ValueError: If the id is not kebab-case or the asset is empty.
        """
        if not SOUND_ID_PATTERN.match(sound_id):
            raise ValueError(f"Sound id '{sound_id}' must be lowercase kebab-case")
        if not asset:
            raise ValueError(f"Sound '{sound_id}' needs a non-empty asset reference")

        self._sound_map[sound_id] = asset
        logger.debug(f"Registered sound '{sound_id}' -> {asset}")

    def resolve(self, sound_id: str) -> str:
        """Return the asset reference registered for ``sound_id``.

        Raises:
            UnknownSoundError: If nothing is registered under that id.
        """
        asset = self._sound_map.get(sound_id)
        if asset is None:
            raise UnknownSoundError(sound_id)
        return asset

    def has_sound(self, sound_id: str) -> bool:
        return sound_id in self._sound_map

    def sound_ids(self) -> list[str]:
        return sorted(self._sound_map)
