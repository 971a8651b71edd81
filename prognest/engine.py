from __future__ import annotations

import itertools
import logging
import threading
import weakref
from dataclasses import dataclass, field, replace
from decimal import Decimal
from fractions import Fraction
from typing import Callable, Dict, List, Optional, Tuple, Union

from .channel import ChangeChannel, Observer
from .exceptions import ZeroScaleError

LOGGER = logging.getLogger(__name__)
LOGGER.addHandler(logging.NullHandler())

Number = Union[int, float, Fraction, Decimal]

# (parent_id, child_id, contribution)
_Update = Tuple[int, int, Number]


def _new_children() -> List[int]:
    return []


def _new_contributions() -> Dict[int, Number]:
    return {}


@dataclass
class NodeState:
    node_id: int
    weight: Number
    internal_scale: Number
    parent_id: Optional[int] = None
    depth: int = 0
    direct_progress: Number = 0
    children: List[int] = field(default_factory=_new_children)
    child_contributions: Dict[int, Number] = field(default_factory=_new_contributions)

    def effective_value(self) -> Number:
        return self.direct_progress + sum(self.child_contributions.values())


class ProgressTree:
    """
    Arena owning every node of one progress tree.

    Nodes reference their parent by id only. The change channel is closed as
    soon as the arena is garbage collected.
    """

    def __init__(self, total: Number, internal: Optional[Number] = None) -> None:
        self._lock = threading.RLock()
        self._ids = itertools.count()
        self._nodes: Dict[int, NodeState] = {}
        self.channel = ChangeChannel(0)
        self._published: Number = 0
        # Absolute units added past every scale (advance_raw).
        self._raw: Number = 0
        self.root_id = self._add(total, internal, None)
        weakref.finalize(self, self.channel.close)

    def _add(self, weight: Number, internal: Optional[Number], parent_id: Optional[int]) -> int:
        node_id = next(self._ids)
        depth = 0 if parent_id is None else self._nodes[parent_id].depth + 1
        self._nodes[node_id] = NodeState(
            node_id=node_id,
            weight=weight,
            internal_scale=weight if internal is None else internal,
            parent_id=parent_id,
            depth=depth,
        )
        if parent_id is not None:
            parent = self._nodes[parent_id]
            parent.children.append(node_id)
            parent.child_contributions[node_id] = 0
        return node_id

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)

    def node(self, node_id: int) -> NodeState:
        """Snapshot of one node; later mutations of the tree do not show through."""
        with self._lock:
            state = self._nodes[node_id]
            return replace(
                state,
                children=list(state.children),
                child_contributions=dict(state.child_contributions),
            )

    def add_child(self, parent_id: int, amount: Number, internal: Optional[Number] = None) -> int:
        with self._lock:
            child_id = self._add(amount, internal, parent_id)
        LOGGER.debug("allocated node %d under %d: weight=%r internal=%r", child_id, parent_id, amount, internal)
        return child_id

    def set_internal(self, node_id: int, value: Number) -> None:
        # Contributions already reported upward keep their old scale.
        with self._lock:
            self._nodes[node_id].internal_scale = value

    def advance(self, node_id: int, delta: Number) -> None:
        with self._lock:
            updates, root_value = self._plan(node_id, delta)
            self._nodes[node_id].direct_progress += delta
            self._commit(updates, root_value)

    def advance_raw(self, delta: Number) -> None:
        with self._lock:
            self._raw += delta
            updates, root_value = self._plan(self.root_id, 0)
            self._commit(updates, root_value)

    def recompute_and_propagate(self, node_id: int) -> None:
        with self._lock:
            updates, root_value = self._plan(node_id, 0)
            self._commit(updates, root_value)

    def root_value(self) -> Number:
        with self._lock:
            root = self._nodes[self.root_id]
            effective = root.effective_value()
            if root.internal_scale != root.weight:
                effective = self._scaled(root, effective)
            return effective + self._raw

    def _scaled(self, state: NodeState, effective: Number) -> Number:
        if state.internal_scale == 0:
            LOGGER.warning("node %d (depth %d) has a zero internal scale", state.node_id, state.depth)
            raise ZeroScaleError(
                f"node {state.node_id} at depth {state.depth} has internal scale 0",
                node_id=state.node_id,
                depth=state.depth,
            )
        return effective * state.weight / state.internal_scale

    def _plan(self, node_id: int, delta: Number) -> Tuple[List[_Update], Number]:
        """Walk from ``node_id`` to the root without writing anything."""
        updates: List[_Update] = []
        current = node_id
        pending: Optional[Tuple[int, Number]] = None
        while True:
            state = self._nodes[current]
            contributions = state.child_contributions
            if pending is not None:
                contributions = dict(contributions)
                contributions[pending[0]] = pending[1]
            effective = state.direct_progress + sum(contributions.values())
            if current == node_id:
                effective += delta
            if state.parent_id is None:
                # A root with its own internal scale maps it onto its total.
                if state.internal_scale != state.weight:
                    effective = self._scaled(state, effective)
                return updates, effective + self._raw
            contribution = self._scaled(state, effective)
            updates.append((state.parent_id, current, contribution))
            pending = (current, contribution)
            current = state.parent_id

    def _commit(self, updates: List[_Update], root_value: Number) -> None:
        for parent_id, child_id, contribution in updates:
            self._nodes[parent_id].child_contributions[child_id] = contribution
        if root_value != self._published:
            self._published = root_value
            self.channel.publish(root_value)


def _closed_channel() -> ChangeChannel:
    ch = ChangeChannel(0)
    ch.close()
    return ch


class Progress:
    """
    Maps internal progress of a (sub)task onto the absolute range of the root.

    ``Progress(total)`` creates the root and owns the whole tree. Handles
    returned by ``allocate`` only hold a weak reference to it: once the root
    handle is dropped, its subtasks stop reporting and observers see the
    channel closed.

        prog = Progress(10000)
        obs = prog.subscribe()
        sub = prog.allocate(8000)
        sub.set_internal(10000)
        sub.advance(5000)
        obs.read_and_acknowledge()  # 4000
    """

    _tree: Optional[ProgressTree]
    _tree_ref: Callable[[], Optional[ProgressTree]]

    def __init__(self, total: Number, internal: Optional[Number] = None) -> None:
        tree = ProgressTree(total, internal)
        self._tree = tree
        self._tree_ref = weakref.ref(tree)
        self._node_id = tree.root_id
        self._allocation = total
        self._internal = total if internal is None else internal

    @classmethod
    def _attach(
        cls,
        tree_ref: Callable[[], Optional[ProgressTree]],
        node_id: int,
        allocation: Number,
        internal: Number,
    ) -> "Progress":
        obj = cls.__new__(cls)
        obj._tree = None
        obj._tree_ref = tree_ref
        obj._node_id = node_id
        obj._allocation = allocation
        obj._internal = internal
        return obj

    def _live_tree(self, op: str) -> Optional[ProgressTree]:
        tree = self._tree_ref()
        if tree is None:
            LOGGER.debug("%s ignored on node %d: progress tree released", op, self._node_id)
        return tree

    @property
    def allocation(self) -> Number:
        """Allocation (weight) granted by the parent, in the parent's internal units."""
        return self._allocation

    @property
    def total(self) -> Optional[Number]:
        """Absolute range of the root, or None once the tree is released."""
        tree = self._tree_ref()
        return tree.node(tree.root_id).weight if tree is not None else None

    @property
    def internal(self) -> Number:
        tree = self._tree_ref()
        if tree is not None:
            self._internal = tree.node(self._node_id).internal_scale
        return self._internal

    @property
    def is_root(self) -> bool:
        return self._tree is not None

    @property
    def depth(self) -> int:
        tree = self._tree_ref()
        return tree.node(self._node_id).depth if tree is not None else -1

    def subscribe(self) -> Observer:
        """Observer on the absolute value published by the root."""
        tree = self._live_tree("subscribe")
        if tree is None:
            return _closed_channel().subscribe()
        return tree.channel.subscribe()

    def set_internal(self, internal: Number) -> None:
        """Set the internal max value. Call before advancing this node."""
        self._internal = internal
        tree = self._live_tree("set_internal")
        if tree is not None:
            tree.set_internal(self._node_id, internal)

    def allocate(self, allocation: Number, internal: Optional[Number] = None) -> "Progress":
        """
        Create a subtask owning ``allocation`` units of this node's internal
        scale. The allocation should generally not exceed what is left, but
        nothing checks it.
        """
        chosen_internal = allocation if internal is None else internal
        tree = self._live_tree("allocate")
        if tree is None:
            return Progress._attach(_dead_ref, -1, allocation, chosen_internal)
        child_id = tree.add_child(self._node_id, allocation, internal)
        return Progress._attach(self._tree_ref, child_id, allocation, chosen_internal)

    def allocate_fraction(self, fraction: Number, internal: Optional[Number] = None) -> "Progress":
        """Allocate ``1 / fraction`` of this node's internal range to a subtask."""
        return self.allocate(self.internal / fraction, internal)

    def advance(self, progress: Number) -> None:
        """Advance by ``progress`` units of internal progress."""
        tree = self._live_tree("advance")
        if tree is not None:
            tree.advance(self._node_id, progress)

    def advance_raw(self, progress: Number) -> None:
        """
        Add ``progress`` absolute units directly to the root value.

        Skips internal progress calculation, use with caution.
        """
        tree = self._live_tree("advance_raw")
        if tree is not None:
            tree.advance_raw(progress)

    def __repr__(self) -> str:
        return f"Progress(node={self._node_id}, allocation={self._allocation!r}, internal={self._internal!r})"


def _dead_ref() -> Optional[ProgressTree]:
    return None
