"""Multiobjective shortest paths over an effect graph.

Finds, for every node, the Pareto-optimal set of (path length, path cost)
labels from a starting node, following the label-setting approach of
Maristany de las Casas, Sedeño-Noda and Borndörfer (2021).
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from .effect_graph import EffectGraph
from .mixing import SUBSTANCES, Effects, Substance

NICHE = 0xFFFFFFFF

_log = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class Label:
    """A path ending at some node: its length, cost and the last step taken."""

    length: int
    cost: int
    previous_substance: Substance = Substance.Cuke
    parent: int = NICHE

    def backlink(self) -> tuple[int, Substance] | None:
        """The previous node and the substance mixed there, or None at the start."""
        if self.parent == NICHE:
            return None
        return self.parent, self.previous_substance


def label_nondominated_nonequal(label: Label, existing: Iterable[Label]) -> bool:
    """True if no existing label dominates or equals ``label`` in (length, cost)."""
    for ex in existing:
        if ex.length == label.length and ex.cost == label.cost:
            return False
        if ex.length <= label.length and ex.cost <= label.cost:
            return False
        if ex.length >= label.length and ex.cost >= label.cost:
            _log.warning("new label dominates existing labels! %r < %r", ex, label)
            return True
    return True


class _PendingQueue:
    """At most one pending label per node, popped smallest first."""

    def __init__(self) -> None:
        self._heap: list[tuple[Label, int]] = []
        self._current: dict[int, Label] = {}

    def push(self, node: int, label: Label) -> None:
        self._current[node] = label
        heapq.heappush(self._heap, (label, node))

    def push_if_better(self, node: int, label: Label) -> None:
        current = self._current.get(node)
        if current is None or label < current:
            self.push(node, label)

    def pop(self) -> tuple[int, Label] | None:
        while self._heap:
            label, node = heapq.heappop(self._heap)
            if self._current.get(node) == label:
                del self._current[node]
                return node, label
        return None


def _next_candidate_label(
    node: int,
    graph: EffectGraph,
    substance_costs: Sequence[int],
    permanent_labels: list[list[Label]],
) -> Label | None:
    best: Label | None = None
    existing = permanent_labels[node]
    for pred, substance in graph.predecessors_with_substances(node):
        for old in permanent_labels[pred]:
            candidate = Label(
                length=old.length + 1,
                cost=old.cost + substance_costs[substance],
                previous_substance=substance,
                parent=pred,
            )
            if label_nondominated_nonequal(candidate, existing):
                if best is None or candidate < best:
                    best = candidate
                break
    return best


def multiobjective_shortest_path(
    graph: EffectGraph,
    substance_costs: Sequence[int],
    starting_node: Effects,
) -> list[list[Label]]:
    """Pareto-optimal labels for every node, reached from ``starting_node``."""
    permanent_labels: list[list[Label]] = [[] for _ in range(graph.num_nodes())]
    pending = _PendingQueue()
    pending.push(graph.encode(starting_node), Label(length=0, cost=0))

    while (item := pending.pop()) is not None:
        node, label = item
        permanent_labels[node].append(label)

        candidate = _next_candidate_label(node, graph, substance_costs, permanent_labels)
        if candidate is not None:
            pending.push(node, candidate)

        for substance, child in zip(SUBSTANCES, graph.successors(node)):
            new_label = Label(
                length=label.length + 1,
                cost=label.cost + substance_costs[substance],
                previous_substance=substance,
                parent=node,
            )
            if label_nondominated_nonequal(new_label, permanent_labels[child]):
                pending.push_if_better(child, new_label)

    return permanent_labels