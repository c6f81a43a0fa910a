"""
Activity Network for CPM calculations.

Stores activities in an arena indexed by dense integers with adjacency
lists of link indices, and provides cycle-safe topological ordering.
"""

import logging
from copy import copy
from typing import Iterable, Optional

from .errors import CircularDependency, DanglingPredecessor, InvalidActivity
from .models import Activity, Dependency

logger = logging.getLogger(__name__)

TRACE_DIRECTIONS = ('forward', 'backward', 'both')


class ActivityNetwork:
    """
    Activity dependency network for CPM calculations.

    Maintains activities and their predecessor/successor links with
    index-based lookups and topological sorting.
    """

    def __init__(self):
        self.activities: list[Activity] = []
        self.dependencies: list[Dependency] = []
        self._index: dict[str, int] = {}
        self._successors: list[list[int]] = []      # node -> link indices
        self._predecessors: list[list[int]] = []    # node -> link indices
        self._order: Optional[list[int]] = None

    @classmethod
    def build(cls, activities: Iterable[Activity],
              links: Iterable[Dependency]) -> 'ActivityNetwork':
        """
        Build a network from activities and links.

        Activities are copied so the caller's objects are never modified.
        Raises InvalidActivity, DanglingPredecessor.
        """
        network = cls()
        for activity in activities:
            network.add_activity(copy(activity))
        for dep in links:
            network.add_dependency(dep)
        return network

    def add_activity(self, activity: Activity) -> None:
        """Add an activity to the network."""
        issues = activity.validate()
        if issues:
            raise InvalidActivity(activity.activity_id, issues)
        if activity.activity_id in self._index:
            raise InvalidActivity(activity.activity_id, ["duplicate activity id"])

        self._index[activity.activity_id] = len(self.activities)
        self.activities.append(activity)
        self._successors.append([])
        self._predecessors.append([])
        self._order = None

    def add_dependency(self, dep: Dependency) -> bool:
        """
        Add a link to the network.

        Both activities must exist. Links touching a summary activity take
        no part in scheduling logic and are skipped.

        Returns True if added, False if skipped.
        """
        if dep.succ_id not in self._index:
            raise DanglingPredecessor(dep.pred_id, dep.succ_id)
        if dep.pred_id not in self._index:
            raise DanglingPredecessor(dep.succ_id, dep.pred_id)

        pred = self._index[dep.pred_id]
        succ = self._index[dep.succ_id]
        if self.activities[pred].is_summary() or self.activities[succ].is_summary():
            logger.warning(f"Ignoring link {dep.pred_id} -> {dep.succ_id}: summary activities carry no logic")
            return False

        link_idx = len(self.dependencies)
        self.dependencies.append(dep)
        self._successors[pred].append(link_idx)
        self._predecessors[succ].append(link_idx)
        self._order = None
        return True

    def index_of(self, activity_id: str) -> int:
        return self._index[activity_id]

    def predecessor_links(self, idx: int) -> list[int]:
        """Link indices entering node idx."""
        return self._predecessors[idx]

    def successor_links(self, idx: int) -> list[int]:
        """Link indices leaving node idx."""
        return self._successors[idx]

    def topological_order(self) -> list[int]:
        """
        Return node indices in topological order (predecessors first).

        Iterative depth-first search over predecessor links, visiting roots
        in input order. A node found on the current path closes a cycle, and
        CircularDependency is raised with that cycle. Each node and link is
        visited once, so the search is bounded by network size.
        """
        if self._order is not None:
            return self._order

        n = len(self.activities)
        done = [False] * n
        visiting = [False] * n
        order = []

        for root in range(n):
            if done[root]:
                continue
            # Stack of (node, position in its predecessor list)
            stack = [(root, 0)]
            visiting[root] = True

            while stack:
                node, pos = stack[-1]
                preds = self._predecessors[node]
                if pos < len(preds):
                    stack[-1] = (node, pos + 1)
                    pred = self.dependencies[preds[pos]].pred_id
                    pred_idx = self._index[pred]
                    if done[pred_idx]:
                        continue
                    if visiting[pred_idx]:
                        raise self._cycle_error(stack, pred_idx)
                    visiting[pred_idx] = True
                    stack.append((pred_idx, 0))
                else:
                    stack.pop()
                    visiting[node] = False
                    done[node] = True
                    order.append(node)

        self._order = order
        return order

    def _cycle_error(self, stack: list[tuple[int, int]], closing: int) -> CircularDependency:
        """Build the error for a cycle closed at node ``closing``."""
        path = [node for node, _ in stack]
        start = path.index(closing)
        # Stack runs successor -> predecessor; report in execution order
        cycle = [self.activities[i].activity_id for i in reversed(path[start:])]
        cycle.append(cycle[0])
        return CircularDependency(self.activities[closing].activity_id, cycle)

    def topological_sort(self) -> list[str]:
        """Return activity IDs in topological order."""
        return [self.activities[i].activity_id for i in self.topological_order()]

    def get_all_predecessors(self, activity_id: str, include_self: bool = False) -> set[str]:
        """Get all predecessor activity IDs (transitive closure)."""
        return self._trace(activity_id, self._predecessors, lambda d: d.pred_id, include_self)

    def get_all_successors(self, activity_id: str, include_self: bool = False) -> set[str]:
        """Get all successor activity IDs (transitive closure)."""
        return self._trace(activity_id, self._successors, lambda d: d.succ_id, include_self)

    def _trace(self, activity_id, adjacency, neighbour, include_self) -> set[str]:
        result = {activity_id} if include_self else set()
        visited = set()
        queue = [self._index[activity_id]]

        while queue:
            current = queue.pop()
            if current in visited:
                continue
            visited.add(current)
            for link_idx in adjacency[current]:
                other = neighbour(self.dependencies[link_idx])
                result.add(other)
                queue.append(self._index[other])

        return result

    def trace_chain(self, activity_id: str, direction: str = 'both') -> set[str]:
        """
        Get the logic chain through an activity.

        Args:
            activity_id: Activity to trace from (always part of the chain)
            direction: 'forward' (successors), 'backward' (predecessors) or 'both'

        Returns:
            Activity IDs in the chain; empty if activity_id is unknown
        """
        if direction not in TRACE_DIRECTIONS:
            raise ValueError(f"direction must be one of {', '.join(TRACE_DIRECTIONS)}, got {direction!r}")
        if activity_id not in self._index:
            return set()

        chain = {activity_id}
        if direction in ('backward', 'both'):
            chain |= self.get_all_predecessors(activity_id)
        if direction in ('forward', 'both'):
            chain |= self.get_all_successors(activity_id)
        return chain

    def __len__(self) -> int:
        return len(self.activities)

    def __contains__(self, activity_id: str) -> bool:
        return activity_id in self._index

    def __repr__(self) -> str:
        return f"ActivityNetwork({len(self.activities)} activities, {len(self.dependencies)} dependencies)"


def trace_chain(activities: Iterable[Activity], links: Iterable[Dependency],
                activity_id: str, direction: str = 'both') -> set[str]:
    """Build a network and trace the chain through activity_id."""
    return ActivityNetwork.build(activities, links).trace_chain(activity_id, direction)
