"""Transition event payloads published on the message bus.

The scheduler publishes a RuntimeTransition for every change of the
global runtime state and a NodeTransition whenever a node becomes
RUNNING or COMPLETED.
"""

import time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from common.message_bus import MessageType
from common.timer_types import TimerConfig, TimerState


class RuntimeTransition(BaseModel):
    """Global runtime state change of a scheduler."""

    model_config = ConfigDict(frozen=True)

    previous: TimerState
    current: TimerState
    root_id: Optional[str] = Field(
        None, description="Id of the bound root, None once detached"
    )
    timestamp: float = Field(default_factory=time.time)

    @property
    def message_type(self) -> MessageType:
        return MessageType.RUNTIME_STATE_CHANGED

    def send(self, message_bus, sender) -> None:
        """Publish this transition on ``message_bus``."""
        message_bus.publish(sender, self.message_type, self)


class NodeTransition(BaseModel):
    """A single node reaching RUNNING or COMPLETED."""

    model_config = ConfigDict(frozen=True)

    node_id: str
    label: str = ""
    state: TimerState
    is_root: bool = False
    config: TimerConfig
    timestamp: float = Field(default_factory=time.time)

    @property
    def message_type(self) -> MessageType:
        if self.state == TimerState.COMPLETED:
            return MessageType.NODE_COMPLETED
        return MessageType.NODE_RUNNING

    def send(self, message_bus, sender) -> None:
        """Publish this transition on ``message_bus``."""
        message_bus.publish(sender, self.message_type, self)
