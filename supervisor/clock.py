"""Time sources gating a timer node's RUNNING to COMPLETED step.

The scheduler never sleeps on its own. After a node's children are done it
asks its clock to let the node's own duration elapse; the clock may stop
early when the scheduler leaves RUNNING and report that the node is not
finished yet.
"""

import logging
import threading
import time
from typing import Callable, Optional

from common.timer_node import TimerNode

logger = logging.getLogger(__name__)


class Clock:
    """Interface for clocks used by TimerScheduler."""

    def elapse(self, node: TimerNode, should_continue: Callable[[], bool]) -> bool:
        """Let the duration of ``node`` pass.

        Args:
            node: The node whose own duration is elapsing.
            should_continue: Returns False once the scheduler has left
                RUNNING; the clock must then stop waiting.

        Returns:
            bool: True if the node's time is fully elapsed.
        """
        raise NotImplementedError

    def reset(self) -> None:
        """Forget any partially elapsed durations."""


class InstantClock(Clock):
    """Completes every node immediately, regardless of its duration.

    A node whose run was paused before its turn to complete stays RUNNING.
    """

    def elapse(self, node: TimerNode, should_continue: Callable[[], bool]) -> bool:
        return should_continue()


class WallClock(Clock):
    """Waits out real durations in small slices so a pause can interrupt it.

    Remaining time of an interrupted node is remembered and consumed when
    the scheduler re-enters that node after a resume. Open-ended nodes
    (no ``duration_ms``) complete as soon as their children do.
    """

    def __init__(
        self,
        tick_ms: int = 50,
        sleep: Optional[Callable[[float], None]] = None,
        monotonic: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize WallClock.

        Args:
            tick_ms: Longest single wait before re-checking the scheduler state
            sleep: Sleep function, defaults to time.sleep
            monotonic: Monotonic time source, defaults to time.monotonic
        """
        if tick_ms <= 0:
            raise ValueError("tick_ms must be a positive number of milliseconds")

        self.tick_seconds = tick_ms / 1000.0
        self._sleep = sleep or time.sleep
        self._monotonic = monotonic or time.monotonic
        self._remaining: dict[str, float] = {}
        self._lock = threading.Lock()

    def elapse(self, node: TimerNode, should_continue: Callable[[], bool]) -> bool:
        duration_ms = node.config.duration_ms
        if not duration_ms:
            return True

        with self._lock:
            remaining = self._remaining.pop(node.id, duration_ms / 1000.0)

        last = self._monotonic()
        while remaining > 0:
            if not should_continue():
                with self._lock:
                    self._remaining[node.id] = remaining
                logger.debug(
                    f"Timer '{node.id}' interrupted with {remaining:.3f}s remaining"
                )
                return False

            self._sleep(min(self.tick_seconds, remaining))
            now = self._monotonic()
            remaining -= now - last
            last = now

        return True

    def remaining_seconds(self, node_id: str) -> Optional[float]:
        """Return the stored remaining time of an interrupted node, if any."""
        with self._lock:
            return self._remaining.get(node_id)

    def reset(self) -> None:
        with self._lock:
            self._remaining.clear()


def create_clock(kind: str, tick_ms: int = 50) -> Clock:
    """Create a clock from its configuration name.

    Args:
        kind: ``"instant"`` or ``"wall"``.
        tick_ms: Slice length for the wall clock.

    Raises:
        ValueError: If ``kind`` is not a known clock.
    """
    if kind == "instant":
        return InstantClock()
    if kind == "wall":
        return WallClock(tick_ms=tick_ms)
    raise ValueError(f"Unknown clock type '{kind}', expected 'instant' or 'wall'")
