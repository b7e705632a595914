"""Read-only structural facade over a timer tree.

Provides deterministic traversal, aggregation and validation helpers used
by the scheduler, diagnostics and persistence. Nothing in this module
mutates node state or tree shape.
"""

import logging
from typing import Callable, Optional

from common.timer_node import StructuralError, TimerNode, build_timer_tree
from common.timer_types import TimerConfig, TimerState

logger = logging.getLogger("supervisor")


class TimerGraph:
    """Owns one root TimerNode for as long as the tree is edited or executed.

    Traversal order is a pure function of tree shape: pre-order, children
    left to right in child-list order.
    """

    def __init__(self, root: TimerNode):
        """Initialize TimerGraph and validate the tree it owns.

        Args:
            root: Root node of the timer tree.

        Raises:
            StructuralError: If the tree contains duplicate ids.
        """
        self.root = root
        self.validate()

    @classmethod
    def from_config(cls, config: TimerConfig) -> "TimerGraph":
        """Build a graph from a TimerConfig tree.

        Args:
            config: Root configuration.

        Returns:
            TimerGraph: New graph owning a freshly built tree.
        """
        return cls(build_timer_tree(config))

    def traverse_depth_first(self, visit: Callable[[TimerNode], None]) -> None:
        """Walk the tree in pre-order, calling ``visit`` once per node.

        A node is visited before any of its children. ``visit`` must not
        change the shape of the tree.
        """
        stack = [self.root]
        while stack:
            node = stack.pop()
            visit(node)
            stack.extend(reversed(node.children()))

    def collect_all_nodes(self) -> list[TimerNode]:
        """Collect every node in pre-order."""
        nodes: list[TimerNode] = []
        self.traverse_depth_first(nodes.append)
        return nodes

    def collect_leaf_nodes(self) -> list[TimerNode]:
        """Collect nodes without children, preserving pre-order."""
        leaves: list[TimerNode] = []

        def visit(node: TimerNode) -> None:
            if not node.has_children():
                leaves.append(node)

        self.traverse_depth_first(visit)
        return leaves

    def node_count(self) -> int:
        return len(self.collect_all_nodes())

    def find_node(self, node_id: str) -> Optional[TimerNode]:
        """Return the node with ``node_id`` or None if absent."""
        for node in self.collect_all_nodes():
            if node.id == node_id:
                return node
        return None

    def validate(self) -> None:
        """Check structural invariants that attachment alone cannot see.

        Raises:
            StructuralError: If two nodes share an id.
        """
        seen: set[str] = set()
        for node in self.collect_all_nodes():
            if node.id in seen:
                raise StructuralError(f"Duplicate timer id '{node.id}' in tree")
            seen.add(node.id)
        logger.debug(f"Validated timer graph '{self.root.id}' ({len(seen)} nodes)")

    def is_complete(self) -> bool:
        """Check if every node in the tree is COMPLETED."""
        return all(
            node.run_state == TimerState.COMPLETED for node in self.collect_all_nodes()
        )

    def snapshot_run_states(self) -> dict[str, TimerState]:
        """Map node id to run state, in pre-order."""
        return {node.id: node.run_state for node in self.collect_all_nodes()}

    def to_dict(self) -> dict:
        """Convert the tree to a nested dictionary for diagnostics.

        Returns:
            Dictionary with id, label, mode, state and children of each node.
        """

        def describe(node: TimerNode) -> dict:
            return {
                "id": node.id,
                "label": node.label,
                "execution_mode": node.config.execution_mode.value,
                "duration_ms": node.config.duration_ms,
                "state": node.run_state.value,
                "children": [describe(child) for child in node.children()],
            }

        return describe(self.root)
