from unittest.mock import Mock

import pytest

from audio.audio_manager import AudioManager
from audio.audio_service import AudioService
from audio.sound_library import SoundLibrary, UnknownSoundError
from common.bus_packet import NodeTransition, RuntimeTransition
from common.message_bus import MessageType
from common.timer_types import AudioChannelType, TimerAudioConfig, TimerConfig, TimerState

ALARM = AudioChannelType.ALARM
BACKGROUND = AudioChannelType.BACKGROUND


def node_event(node_id, state, audio=None):
    return NodeTransition(
        node_id=node_id, state=state, config=TimerConfig(id=node_id, audio=audio)
    )


def runtime_event(previous, current):
    return RuntimeTransition(previous=previous, current=current, root_id="root")


class TestAudioManager:
    """Test suite for AudioManager playback coordination."""

    @pytest.fixture
    def service(self):
        return AudioService()

    @pytest.fixture
    def manager(self, service):
        library = SoundLibrary({"bell": "bell.mp3", "rain": "rain.mp3"})
        return AudioManager(audio_service=service, sound_library=library)

    def test_play_alarm(self, manager, service):
        manager.play_alarm(TimerAudioConfig(alarm_sound_id="bell"))

        assert service.history == [("play", "bell.mp3", ALARM)]
        assert manager.active_assets(ALARM) == ["bell.mp3"]

    def test_overlapping_alarms_are_tracked(self, manager):
        manager.play_alarm(TimerAudioConfig(alarm_sound_id="bell"))
        manager.play_alarm(TimerAudioConfig(alarm_sound_id="default-alarm"))

        assert len(manager.active_assets(ALARM)) == 2

    def test_no_alarm_configured(self, manager, service):
        manager.play_alarm(TimerAudioConfig())

        assert service.history == []

    def test_unknown_alarm_raises(self, manager):
        with pytest.raises(UnknownSoundError):
            manager.play_alarm(TimerAudioConfig(alarm_sound_id="missing"))

    def test_background_loop_and_one_shot(self, manager, service):
        manager.start_background(TimerAudioConfig(background_sound_id="rain"))
        manager.start_background(
            TimerAudioConfig(background_sound_id="bell", background_loop=False)
        )

        assert service.history == [
            ("play_loop", "rain.mp3", BACKGROUND),
            ("play", "bell.mp3", BACKGROUND),
        ]

    def test_stop_channel_and_stop_all(self, manager, service):
        manager.play_alarm(TimerAudioConfig(alarm_sound_id="bell"))
        manager.start_background(TimerAudioConfig(background_sound_id="rain"))

        manager.stop_channel(ALARM)
        assert manager.active_assets(ALARM) == []
        assert manager.active_assets(BACKGROUND) == ["rain.mp3"]

        manager.stop_all()
        assert manager.active_assets(BACKGROUND) == []
        assert service.history[-1] == ("stop_channel", "", BACKGROUND)

    def test_attach_subscribes_handlers(self, manager):
        bus = Mock()

        manager.attach(bus)

        subscribed = [call.args[1] for call in bus.subscribe.call_args_list]
        assert subscribed == [
            MessageType.NODE_RUNNING,
            MessageType.NODE_COMPLETED,
            MessageType.RUNTIME_STATE_CHANGED,
        ]

    def test_running_node_starts_background(self, manager, service):
        audio = TimerAudioConfig(background_sound_id="rain", alarm_sound_id="bell")

        manager.handle_node_running(node_event("a", TimerState.RUNNING, audio))

        assert service.history == [("play_loop", "rain.mp3", BACKGROUND)]

    def test_completed_node_stops_background_and_plays_alarm(self, manager, service):
        audio = TimerAudioConfig(background_sound_id="rain", alarm_sound_id="bell")
        manager.handle_node_running(node_event("a", TimerState.RUNNING, audio))

        manager.handle_node_completed(node_event("a", TimerState.COMPLETED, audio))

        assert service.history[1:] == [
            ("stop_channel", "", BACKGROUND),
            ("play", "bell.mp3", ALARM),
        ]

    def test_completion_keeps_other_backgrounds_playing(self, manager, service):
        rain = TimerAudioConfig(background_sound_id="rain")
        bell = TimerAudioConfig(background_sound_id="bell")
        manager.handle_node_running(node_event("a", TimerState.RUNNING, rain))
        manager.handle_node_running(node_event("b", TimerState.RUNNING, bell))

        manager.handle_node_completed(node_event("a", TimerState.COMPLETED, rain))

        assert manager.active_assets(BACKGROUND) == ["bell.mp3"]

    def test_nodes_without_audio_are_ignored(self, manager, service):
        manager.handle_node_running(node_event("a", TimerState.RUNNING))
        manager.handle_node_completed(node_event("a", TimerState.COMPLETED))

        assert service.history == []

    def test_unknown_sound_in_handler_is_logged(self, manager, service):
        audio = TimerAudioConfig(background_sound_id="missing", alarm_sound_id="missing")

        manager.handle_node_running(node_event("a", TimerState.RUNNING, audio))
        manager.handle_node_completed(node_event("a", TimerState.COMPLETED, audio))

        assert ("play", "missing", ALARM) not in service.history

    def test_pause_and_resume(self, manager, service):
        audio = TimerAudioConfig(background_sound_id="rain")
        manager.handle_node_running(node_event("a", TimerState.RUNNING, audio))

        manager.handle_runtime_transition(
            runtime_event(TimerState.RUNNING, TimerState.PAUSED)
        )
        assert manager.active_assets(BACKGROUND) == []

        manager.handle_runtime_transition(
            runtime_event(TimerState.PAUSED, TimerState.RUNNING)
        )
        assert manager.active_assets(BACKGROUND) == ["rain.mp3"]

    def test_reset_stops_everything(self, manager):
        audio = TimerAudioConfig(background_sound_id="rain", alarm_sound_id="bell")
        manager.handle_node_running(node_event("a", TimerState.RUNNING, audio))
        manager.play_alarm(audio)

        manager.handle_runtime_transition(
            runtime_event(TimerState.COMPLETED, TimerState.IDLE)
        )

        assert manager.active_assets(ALARM) == []
        assert manager.active_assets(BACKGROUND) == []
        manager.handle_runtime_transition(
            runtime_event(TimerState.PAUSED, TimerState.RUNNING)
        )
        assert manager.active_assets(BACKGROUND) == []
