"""Audio collaborator for the timer engine.

Resolves sound identifiers, coordinates alarm and background channels and
delegates playback to a platform backend.
"""

from audio.audio_manager import AudioManager
from audio.audio_service import AudioService
from audio.sound_library import SoundLibrary, UnknownSoundError

__all__ = ["AudioManager", "AudioService", "SoundLibrary", "UnknownSoundError"]
