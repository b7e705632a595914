"""Timer tree nodes and the structural error taxonomy.

A TimerNode wraps one immutable TimerConfig, exclusively owns an ordered
list of child nodes and carries a single mutable run state. The run state
can only be written through a RunStateWriter, the capability a scheduler
holds for the tree it has bound.
"""

import weakref
from typing import Callable, Optional

from common.timer_types import TimerConfig, TimerState


class TimerError(Exception):
    """Base class for timer engine errors."""


class StructuralError(TimerError):
    """Raised when a tree construction request would break the tree shape.

    Covers attaching a node to itself, introducing a cycle, giving a node a
    second parent, duplicate ids within one tree and editing a tree while a
    scheduler has it bound.
    """


class RootAlreadyBoundError(TimerError):
    """Raised when a root is handed to a scheduler while another owns it."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(
            f"Timer node '{node_id}' is already bound to another active scheduler"
        )


class TimerNode:
    """Single addressable unit of a timer tree.

    Insertion order of children is execution order for SEQUENTIAL nodes.
    There is no child to parent link; parent lookups go through a
    traversal of the owning TimerGraph.
    """

    __slots__ = ("_config", "_children", "_run_state", "_attached", "_owner")

    def __init__(self, config: TimerConfig):
        """Initialize TimerNode with its configuration.

        Args:
            config: The immutable configuration this node wraps.
        """
        self._config = config
        self._children: list["TimerNode"] = []
        self._run_state = TimerState.IDLE
        self._attached = False
        self._owner: Optional["weakref.ref[RunStateWriter]"] = None

    @property
    def config(self) -> TimerConfig:
        return self._config

    @property
    def id(self) -> str:
        return self._config.id

    @property
    def label(self) -> str:
        return self._config.label

    @property
    def run_state(self) -> TimerState:
        """Current run state of this node; read-only outside a scheduler."""
        return self._run_state

    def add_child(self, child: "TimerNode") -> None:
        """Attach ``child`` as the last child of this node.

        Args:
            child: The node to attach.

        Raises:
            StructuralError: If either node belongs to a tree bound to a live
                scheduler, ``child`` is this node, ``child`` already contains
                this node in its subtree or is already attached elsewhere.
                The tree is left unchanged.
        """
        for node in (self, child):
            if _owner_of(node) is not None:
                raise StructuralError(
                    f"TimerNode '{node.id}' is bound to an active scheduler; "
                    "reset it first"
                )

        if child is self:
            raise StructuralError(f"TimerNode '{self.id}' cannot be a child of itself")

        if child._contains(self):
            raise StructuralError(
                f"Attaching '{child.id}' under '{self.id}' would create a cycle"
            )

        if child._attached:
            raise StructuralError(
                f"TimerNode '{child.id}' already has a parent; subtrees cannot be shared"
            )

        self._children.append(child)
        child._attached = True

    def children(self) -> tuple["TimerNode", ...]:
        """Return the children in execution order."""
        return tuple(self._children)

    def has_children(self) -> bool:
        """Return True if this node is composite, False for a leaf."""
        return len(self._children) > 0

    def _contains(self, node: "TimerNode") -> bool:
        # Iterative so deep trees do not hit the recursion limit.
        stack = [self]
        while stack:
            current = stack.pop()
            if current is node:
                return True
            stack.extend(current._children)
        return False

    def __repr__(self) -> str:
        return (
            f"TimerNode(id={self.id!r}, state={self._run_state.value}, "
            f"children={len(self._children)})"
        )


class RunStateWriter:
    """Capability granting write access to run states of one bound tree.

    A scheduler creates one writer for itself and claims a root with it.
    While claimed, no other live writer can claim any node of that tree,
    and writes through a writer that does not own a node are refused.
    Ownership is held weakly so a discarded scheduler does not pin a tree.
    """

    def __init__(self, owner_name: str = "scheduler"):
        self.owner_name = owner_name

    def claim(self, root: TimerNode) -> None:
        """Take ownership of every node under ``root``.

        Raises:
            RootAlreadyBoundError: If any node is owned by another live
                writer. Nothing is claimed in that case.
        """
        nodes = _walk(root)
        for node in nodes:
            owner = _owner_of(node)
            if owner is not None and owner is not self:
                raise RootAlreadyBoundError(node.id)
        for node in nodes:
            node._owner = weakref.ref(self)

    def release(self, root: TimerNode) -> None:
        """Give up ownership of every node under ``root``."""
        for node in _walk(root):
            if _owner_of(node) is self:
                node._owner = None

    def owns(self, node: TimerNode) -> bool:
        return _owner_of(node) is self

    def set(self, node: TimerNode, state: TimerState) -> None:
        """Write ``state`` into ``node``.

        Raises:
            PermissionError: If this writer has not claimed the node.
        """
        if _owner_of(node) is not self:
            raise PermissionError(
                f"{self.owner_name} does not own timer node '{node.id}'"
            )
        node._run_state = state


def _owner_of(node: TimerNode) -> Optional[RunStateWriter]:
    if node._owner is None:
        return None
    return node._owner()


def _walk(root: TimerNode) -> list[TimerNode]:
    nodes = []
    stack = [root]
    while stack:
        node = stack.pop()
        nodes.append(node)
        stack.extend(reversed(node._children))
    return nodes


def build_timer_tree(
    config: TimerConfig, factory: Callable[[TimerConfig], TimerNode] = TimerNode
) -> TimerNode:
    """Build a TimerNode tree mirroring a TimerConfig tree.

    One node is created per config; audio and persistence metadata stay
    on the config and are carried opaquely.

    Args:
        config: Root configuration; its ``children`` define the tree shape.
        factory: Node constructor, mainly useful for tests.

    Returns:
        The root TimerNode.

    Raises:
        StructuralError: If two configs in the tree share an id.
    """
    seen: set[str] = set()
    for item in config.iter_configs():
        if item.id in seen:
            raise StructuralError(f"Duplicate timer id '{item.id}' in configuration")
        seen.add(item.id)

    def build(item: TimerConfig) -> TimerNode:
        node = factory(item)
        for child_config in item.children:
            node.add_child(build(child_config))
        return node

    return build(config)
