"""Dependency graph builder: turns assessments into an ordered migration plan"""

import heapq
from collections import defaultdict
from typing import Dict, List, Sequence, Tuple

from .errors import CyclicDependency
from .models import (
    MigrationAssessment,
    MigrationPlan,
    PlanEntry,
    ResourceIdentifier,
)
from ..utils.logger import setup_logger

Edge = Tuple[ResourceIdentifier, ResourceIdentifier]


class DependencyGraphBuilder:
    """Builds a deterministic, dependency-respecting migration plan.

    An edge ``(a, b)`` means ``a`` must be migrated before ``b``. Edges come from
    each assessment's ``dependencies`` and from the inverted ``dependents`` of
    load balancers. Ready nodes are ordered by ``(priority_tier, input index)``.
    """

    def __init__(self):
        self.logger = setup_logger(self.__class__.__name__)

    def plan(self, assessments: Sequence[Tuple[ResourceIdentifier, MigrationAssessment]]) -> MigrationPlan:
        """Build a MigrationPlan, raising CyclicDependency if no order exists"""

        nodes: List[ResourceIdentifier] = []
        by_id: Dict[ResourceIdentifier, MigrationAssessment] = {}
        for parsed_identifier, assessment in assessments:
            identifier = parsed_identifier.top_level
            if identifier in by_id:
                self.logger.warning(f"Duplicate resource in batch ignored: {identifier}")
                continue
            nodes.append(identifier)
            by_id[identifier] = assessment

        position = {identifier: index for index, identifier in enumerate(nodes)}
        edges, external = self._collect_edges(nodes, by_id, position)

        successors: Dict[ResourceIdentifier, List[ResourceIdentifier]] = defaultdict(list)
        predecessors: Dict[ResourceIdentifier, List[ResourceIdentifier]] = defaultdict(list)
        for before, after in edges:
            successors[before].append(after)
            predecessors[after].append(before)
            if by_id[before].priority_tier >= by_id[after].priority_tier:
                self.logger.warning(
                    f"Tier of {before.resource_name} ({by_id[before].priority_tier}) is not below "
                    f"its dependent {after.resource_name} ({by_id[after].priority_tier})"
                )

        ordered = self._topological_order(nodes, by_id, position, successors, predecessors)

        entries = tuple(
            PlanEntry(
                identifier=identifier,
                assessment=by_id[identifier],
                depends_on=tuple(sorted(predecessors[identifier], key=position.__getitem__)),
                external_dependencies=tuple(external.get(identifier, ())),
            )
            for identifier in ordered
        )

        self.logger.info(
            f"Planned {len(entries)} resources ({sum(1 for e in entries if e.needs_migration)} to migrate, "
            f"{len(edges)} dependency edges)"
        )
        return MigrationPlan(entries=entries, edges=tuple(edges))

    def _collect_edges(
        self,
        nodes: List[ResourceIdentifier],
        by_id: Dict[ResourceIdentifier, MigrationAssessment],
        position: Dict[ResourceIdentifier, int]
    ) -> Tuple[List[Edge], Dict[ResourceIdentifier, List[ResourceIdentifier]]]:
        edges: Dict[Edge, None] = {}
        external: Dict[ResourceIdentifier, List[ResourceIdentifier]] = defaultdict(list)

        for identifier in nodes:
            assessment = by_id[identifier]

            for dependency in assessment.dependencies:
                if dependency in position:
                    edges[(dependency, identifier)] = None
                elif dependency not in external[identifier]:
                    external[identifier].append(dependency)
                    self.logger.debug(
                        f"{identifier.resource_name} depends on {dependency.resource_name}, "
                        f"which is outside this batch"
                    )

            for dependent in assessment.dependents:
                if dependent not in position:
                    continue
                if by_id[dependent].dependency_check_skipped:
                    self.logger.warning(
                        f"Not enforcing {identifier.resource_name} -> {dependent.resource_name}: "
                        f"dependency check overridden"
                    )
                    continue
                edges[(identifier, dependent)] = None

        return list(edges), dict(external)

    def _topological_order(
        self,
        nodes: List[ResourceIdentifier],
        by_id: Dict[ResourceIdentifier, MigrationAssessment],
        position: Dict[ResourceIdentifier, int],
        successors: Dict[ResourceIdentifier, List[ResourceIdentifier]],
        predecessors: Dict[ResourceIdentifier, List[ResourceIdentifier]]
    ) -> List[ResourceIdentifier]:
        in_degree = {identifier: len(predecessors[identifier]) for identifier in nodes}
        ready = [
            (by_id[identifier].priority_tier, position[identifier])
            for identifier in nodes
            if in_degree[identifier] == 0
        ]
        heapq.heapify(ready)

        ordered: List[ResourceIdentifier] = []
        while ready:
            _, index = heapq.heappop(ready)
            identifier = nodes[index]
            ordered.append(identifier)
            for successor in successors[identifier]:
                in_degree[successor] -= 1
                if in_degree[successor] == 0:
                    heapq.heappush(ready, (by_id[successor].priority_tier, position[successor]))

        if len(ordered) < len(nodes):
            remaining = [identifier for identifier in nodes if in_degree[identifier] > 0]
            cycle = self._find_cycle(remaining, predecessors, in_degree)
            self.logger.error(f"Circular dependency detected between {len(cycle)} resources")
            raise CyclicDependency([str(identifier) for identifier in cycle])

        return ordered

    def _find_cycle(
        self,
        remaining: List[ResourceIdentifier],
        predecessors: Dict[ResourceIdentifier, List[ResourceIdentifier]],
        in_degree: Dict[ResourceIdentifier, int]
    ) -> List[ResourceIdentifier]:
        # Every remaining node has an unprocessed predecessor, so walking backwards must revisit a node.
        path: List[ResourceIdentifier] = []
        seen: Dict[ResourceIdentifier, int] = {}
        current = remaining[0]
        while current not in seen:
            seen[current] = len(path)
            path.append(current)
            current = next(p for p in predecessors[current] if in_degree[p] > 0)
        cycle = path[seen[current]:]
        cycle.reverse()
        return cycle + [cycle[0]]
