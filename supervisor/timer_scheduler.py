"""Timer scheduler owning the authoritative runtime state machine.

Drives execution of a TimerNode tree according to each node's execution
mode, validates every requested transition against the legal transition
table and announces transitions on the message bus.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from common.bus_packet import NodeTransition, RuntimeTransition
from common.message_bus import MessageBus
from common.timer_graph import TimerGraph
from common.timer_node import RunStateWriter, TimerNode
from common.timer_types import ExecutionMode, TimerState
from supervisor.clock import Clock, InstantClock

logger = logging.getLogger(__name__)


LEGAL_TRANSITIONS: dict[TimerState, frozenset] = {
    TimerState.IDLE: frozenset({TimerState.RUNNING}),
    TimerState.RUNNING: frozenset({TimerState.PAUSED, TimerState.COMPLETED}),
    TimerState.PAUSED: frozenset({TimerState.RUNNING}),
    TimerState.COMPLETED: frozenset({TimerState.IDLE}),
}


class TimerScheduler:
    """
    Executes one timer tree at a time and owns its runtime state.

    Requests for transitions outside the legal table are ignored silently:
    the state stays unchanged and nothing is raised. The tree walk runs on
    the calling thread of ``start``/``resume`` and is not held under the
    scheduler lock, so ``pause`` from another thread interrupts it at the
    next check point.
    """

    def __init__(
        self,
        message_bus: Optional[MessageBus] = None,
        clock: Optional[Clock] = None,
        max_parallel_workers: Optional[int] = None,
        name: str = "TimerScheduler",
    ):
        """
        Initialize TimerScheduler.

        Args:
            message_bus: Bus transition events are published on, if any
            clock: Time source gating node completion, defaults to InstantClock
            max_parallel_workers: Worker cap per PARALLEL node, None for one per child
            name: Name used in logs and as event publisher
        """
        self.message_bus = message_bus
        self.clock = clock or InstantClock()
        self.max_parallel_workers = max_parallel_workers
        self.name = name

        self._runtime_state = TimerState.IDLE
        self._root: Optional[TimerNode] = None
        self._walking = False
        self._lock = threading.RLock()
        self._writer = RunStateWriter(owner_name=name)

        self._strategies: dict[ExecutionMode, Callable[[TimerNode], bool]] = {
            ExecutionMode.SEQUENTIAL: self._run_children_sequentially,
            ExecutionMode.PARALLEL: self._run_children_in_parallel,
        }

        logger.info(f"{name} initialized with {self.clock.__class__.__name__}")

    # Public control surface

    def start(self, root: TimerNode):
        """Bind ``root`` and execute it. Ignored unless IDLE.

        Args:
            root: Root of the tree to execute.

        Raises:
            StructuralError: If the tree contains duplicate ids.
            RootAlreadyBoundError: If another live scheduler owns the tree.
        """
        with self._lock:
            if self._runtime_state != TimerState.IDLE:
                self._log_rejected("start")
                return

            graph = TimerGraph(root)
            self._writer.claim(root)
            for node in graph.collect_all_nodes():
                self._writer.set(node, TimerState.IDLE)
            self._root = root
            transition = self._transition(TimerState.RUNNING)
            self._walking = True

        self._announce(transition)
        self._drive()

    def pause(self):
        """Halt execution at the current point. Ignored unless RUNNING."""
        with self._lock:
            if self._runtime_state != TimerState.RUNNING:
                self._log_rejected("pause")
                return
            transition = self._transition(TimerState.PAUSED)

        self._announce(transition)

    def resume(self):
        """Continue a paused run from where it halted. Ignored unless PAUSED."""
        with self._lock:
            if self._runtime_state != TimerState.PAUSED:
                self._log_rejected("resume")
                return
            transition = self._transition(TimerState.RUNNING)
            # A walk that is still unwinding picks the resume up itself.
            start_walk = not self._walking
            self._walking = True

        self._announce(transition)
        if start_walk:
            self._drive()

    def reset(self):
        """Detach the root and clear node states. Ignored unless COMPLETED."""
        with self._lock:
            if self._runtime_state != TimerState.COMPLETED:
                self._log_rejected("reset")
                return

            root = self._root
            for node in TimerGraph(root).collect_all_nodes():
                if self._writer.owns(node):
                    self._writer.set(node, TimerState.IDLE)
            self._writer.release(root)
            self._root = None
            self.clock.reset()
            transition = self._transition(TimerState.IDLE, root_id=root.id)

        self._announce(transition)

    def get_runtime_state(self) -> TimerState:
        """Return the current global runtime state."""
        return self._runtime_state

    @property
    def runtime_state(self) -> TimerState:
        return self._runtime_state

    @property
    def root(self) -> Optional[TimerNode]:
        return self._root

    def can_transition_to(self, target: TimerState) -> bool:
        """Check if ``target`` is reachable from the current state."""
        with self._lock:
            return target in LEGAL_TRANSITIONS[self._runtime_state]

    # State machine

    def _transition(
        self, target: TimerState, root_id: Optional[str] = None
    ) -> Optional[RuntimeTransition]:
        # Callers hold the lock.
        previous = self._runtime_state
        if target not in LEGAL_TRANSITIONS[previous]:
            logger.debug(f"{self.name}: illegal transition {previous.value} -> {target.value}")
            return None

        self._runtime_state = target
        logger.info(f"{self.name}: {previous.value} -> {target.value}")
        return RuntimeTransition(
            previous=previous,
            current=target,
            root_id=root_id or (self._root.id if self._root else None),
        )

    def _is_running(self) -> bool:
        with self._lock:
            return self._runtime_state == TimerState.RUNNING

    def _log_rejected(self, operation: str):
        logger.debug(
            f"{self.name}: ignored {operation}() while {self._runtime_state.value}"
        )

    # Execution

    def _drive(self):
        root = self._root
        try:
            while True:
                completed = self._execute(root)

                with self._lock:
                    if completed and self._runtime_state == TimerState.RUNNING:
                        transition = self._transition(TimerState.COMPLETED)
                        self._walking = False
                        break
                    if self._runtime_state != TimerState.RUNNING:
                        # Paused, possibly after the root finished its last
                        # slice; the next resume starts a fresh walk.
                        self._walking = False
                        return
                # Resumed while this walk was unwinding; walk again.
        except BaseException:
            with self._lock:
                self._walking = False
            raise

        self._announce(transition)

    def _execute(self, node: TimerNode) -> bool:
        """Run ``node`` and its subtree.

        Returns:
            bool: True if the node is COMPLETED, False if execution halted.
        """
        if node.run_state == TimerState.COMPLETED:
            return True

        if not self._is_running():
            return False

        if node.run_state != TimerState.RUNNING:
            self._set_node_state(node, TimerState.RUNNING)

        strategy = self._strategies[node.config.execution_mode]
        if not strategy(node):
            return False

        if not self.clock.elapse(node, self._is_running):
            return False

        self._set_node_state(node, TimerState.COMPLETED)
        return True

    def _run_children_sequentially(self, node: TimerNode) -> bool:
        for child in node.children():
            if not self._is_running():
                return False
            if not self._execute(child):
                return False
        return True

    def _run_children_in_parallel(self, node: TimerNode) -> bool:
        pending = [
            child for child in node.children() if child.run_state != TimerState.COMPLETED
        ]
        if not pending:
            return True

        if not self._is_running():
            return False

        workers = self.max_parallel_workers or len(pending)
        with ThreadPoolExecutor(
            max_workers=min(workers, len(pending)),
            thread_name_prefix=f"timer-{node.id}",
        ) as executor:
            futures = [executor.submit(self._execute, child) for child in pending]
            try:
                results = [future.result() for future in futures]
            except BaseException:
                # Workers must see the halt before the executor joins them.
                logger.warning(
                    f"{self.name}: parallel run under '{node.id}' interrupted, pausing"
                )
                self.pause()
                raise

        return all(results)

    def _set_node_state(self, node: TimerNode, state: TimerState):
        self._writer.set(node, state)
        logger.debug(f"{self.name}: node '{node.id}' -> {state.value}")

        if self.message_bus is None:
            return
        NodeTransition(
            node_id=node.id,
            label=node.label,
            state=state,
            is_root=node is self._root,
            config=node.config,
        ).send(self.message_bus, self)

    def _announce(self, transition: Optional[RuntimeTransition]):
        if transition is None or self.message_bus is None:
            return
        transition.send(self.message_bus, self)

    def __str__(self) -> str:
        root_id = self._root.id if self._root else None
        return f"TimerScheduler(state={self._runtime_state.value}, root={root_id})"
