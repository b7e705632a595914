"""Global pytest configuration and fixtures for the test suite."""

import pytest

from common.message_bus import MessageBus, MessageType
from common.timer_node import TimerNode
from common.timer_types import ExecutionMode, TimerAudioConfig, TimerConfig


def make_node(node_id, mode=ExecutionMode.SEQUENTIAL, duration_ms=None, audio=None):
    """Create a detached TimerNode with a minimal config."""
    return TimerNode(
        TimerConfig(
            id=node_id,
            label=node_id.upper(),
            duration_ms=duration_ms,
            execution_mode=mode,
            audio=audio,
        )
    )


def make_tree(root_id, child_ids, mode=ExecutionMode.SEQUENTIAL):
    """Create a root with leaf children, returning (root, children)."""
    root = make_node(root_id, mode=mode)
    children = [make_node(child_id) for child_id in child_ids]
    for child in children:
        root.add_child(child)
    return root, children


class EventRecorder:
    """Collects every event published on a bus, in delivery order."""

    def __init__(self, message_bus: MessageBus):
        self.events = []
        for message_type in MessageType:
            message_bus.subscribe(self, message_type, self.events.append)

    def runtime_transitions(self):
        return [
            (event.previous, event.current)
            for event in self.events
            if event.message_type == MessageType.RUNTIME_STATE_CHANGED
        ]

    def node_events(self):
        return [
            (event.node_id, event.state)
            for event in self.events
            if event.message_type != MessageType.RUNTIME_STATE_CHANGED
        ]


@pytest.fixture
def message_bus():
    """Started message bus."""
    bus = MessageBus()
    bus.start()
    yield bus
    bus.stop()


@pytest.fixture
def recorder(message_bus):
    return EventRecorder(message_bus)


@pytest.fixture
def nested_config():
    """Config tree: sequential root with a parallel branch and audio bindings.

    root
      warmup (leaf, background rain, alarm bell)
      sets (PARALLEL)
        left
        right
      cooldown (leaf)
    """
    return TimerConfig(
        id="root",
        name="Workout",
        audio=TimerAudioConfig(alarm_sound_id="default-alarm"),
        children=[
            TimerConfig(
                id="warmup",
                name="Warm up",
                duration_ms=1000,
                audio=TimerAudioConfig(
                    background_sound_id="default-background",
                    alarm_sound_id="default-alarm",
                ),
            ),
            TimerConfig(
                id="sets",
                name="Sets",
                execution_mode=ExecutionMode.PARALLEL,
                children=[
                    TimerConfig(id="left", name="Left", duration_ms=500),
                    TimerConfig(id="right", name="Right", duration_ms=700),
                ],
            ),
            TimerConfig(id="cooldown", name="Cool down", duration_ms=2000),
        ],
    )
