"""Canonical shared models for the timer engine, audio and persistence.

Defines the run states, execution modes and the immutable timer
configuration tree that the engine builds TimerNode trees from.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class TimerState(str, Enum):
    """Enumeration of timer execution states.

    Used both for the scheduler's global runtime state and for the
    per-node run state mirrored during traversal.
    """

    IDLE = "IDLE"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"

    def __repr__(self):
        """Return string representation of TimerState.

        Returns:
            String representation in format "TimerState.{name}".
        """
        return f"TimerState.{self.name}"


class ExecutionMode(str, Enum):
    """How a node drives its children to completion."""

    SEQUENTIAL = "SEQUENTIAL"
    PARALLEL = "PARALLEL"

    def __repr__(self):
        return f"ExecutionMode.{self.name}"


class AudioChannelType(str, Enum):
    """Logical audio channels used by the audio collaborator."""

    ALARM = "ALARM"
    BACKGROUND = "BACKGROUND"


for _enum_type in (TimerState, ExecutionMode, AudioChannelType):
    yaml.SafeDumper.add_multi_representer(
        _enum_type,
        yaml.representer.SafeRepresenter.represent_str,
    )


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class TimerAudioConfig(BaseModel):
    """Audio binding for a single timer.

    Sound identifiers are resolved by the SoundLibrary; the timer core
    carries them opaquely.
    """

    model_config = ConfigDict(frozen=True)

    alarm_sound_id: Optional[str] = Field(
        None, description="Sound played when the timer completes"
    )
    background_sound_id: Optional[str] = Field(
        None, description="Sound played while the timer is running"
    )
    background_loop: bool = Field(
        True, description="Whether the background sound loops until completion"
    )
    volume: Optional[float] = Field(
        None, ge=0.0, le=1.0, description="Normalized playback volume (0-1)"
    )


class PersistenceMetadata(BaseModel):
    """Bookkeeping carried with a config for storage and future sync."""

    model_config = ConfigDict(frozen=True)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    revision: int = Field(0, ge=0, description="Monotonic revision counter")


class TimerConfig(BaseModel):
    """Immutable configuration of one timer and its sub-timers.

    Identity is the ``id`` field: two configs with the same id compare
    equal and hash alike, so a revised config still addresses the same
    timer. Edits never happen in place; use ``revise`` to derive a new
    value.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1, description="Stable unique key of the timer")
    label: str = Field("", alias="name", description="Human readable timer name")
    duration_ms: Optional[int] = Field(
        None, ge=0, description="Duration in milliseconds, None for open-ended"
    )
    execution_mode: ExecutionMode = Field(
        ExecutionMode.SEQUENTIAL, description="How children of this timer run"
    )
    audio: Optional[TimerAudioConfig] = None
    persistence: Optional[PersistenceMetadata] = None
    children: tuple["TimerConfig", ...] = Field(
        default_factory=tuple, description="Ordered sub-timer configurations"
    )

    @model_validator(mode="before")
    @classmethod
    def map_legacy_sequential_flag(cls, data: Any) -> Any:
        """Translate the legacy ``sequential`` boolean into ``execution_mode``.

        Stored timers written before execution modes existed carry
        ``sequential: true|false`` instead.
        """
        if isinstance(data, dict) and "sequential" in data:
            data = dict(data)
            sequential = data.pop("sequential")
            if "execution_mode" not in data and sequential is not None:
                data["execution_mode"] = (
                    ExecutionMode.SEQUENTIAL if sequential else ExecutionMode.PARALLEL
                )
        return data

    @field_validator("id")
    def check_id(cls, value: str) -> str:
        """Reject ids made only of whitespace.

        Raises:
            ValueError: If the id is blank.
        """
        if not value.strip():
            raise ValueError("TimerConfig id must not be blank")
        return value

    def __eq__(self, other):
        if isinstance(other, TimerConfig):
            return self.id == other.id
        return NotImplemented

    def __hash__(self):
        return hash(self.id)

    def revise(self, **changes) -> "TimerConfig":
        """Return a new config with ``changes`` applied.

        The revision counter is incremented and ``updated_at`` refreshed;
        metadata is created if the config had none.

        Args:
            **changes: Field values to replace.

        Returns:
            The revised TimerConfig. ``self`` is left untouched.
        """
        if "id" in changes and changes["id"] != self.id:
            raise ValueError("A revision cannot change the timer id")

        now = utc_now()
        if self.persistence is None:
            metadata = PersistenceMetadata(created_at=now, updated_at=now, revision=1)
        else:
            metadata = self.persistence.model_copy(
                update={"updated_at": now, "revision": self.persistence.revision + 1}
            )

        if "name" in changes:
            changes["label"] = changes.pop("name")

        data = self.model_dump(by_alias=False)
        data.update(changes)
        data["persistence"] = metadata
        return TimerConfig.model_validate(data)

    def iter_configs(self):
        """Yield this config and all nested configs in pre-order."""
        yield self
        for child in self.children:
            yield from child.iter_configs()
