"""
Dependency analysis between logic keys.

A logic key depends on every other logic key its expression references,
either by bare name (``isAdult``) or through a sub-property of a structured
key (``rentTotal.amount``). Keys on a cycle, including a key that refers to
itself, are reported separately and never given a place in the evaluation
order.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union

from .parser import parse_expression

logger = logging.getLogger(__name__)

# A logic section entry: one expression, or several for structured keys
LogicExpressions = Union[str, Iterable[str]]


@dataclass(frozen=True)
class TopologicalSortResult:
    """
    Evaluation order of a logic section.

    Attributes:
        order: Acyclic keys, dependencies first. Ties keep declaration order.
        cyclic_keys: Keys on a dependency cycle, in declaration order.
    """

    order: Tuple[str, ...]
    cyclic_keys: Tuple[str, ...] = ()

    @property
    def has_cycles(self) -> bool:
        return bool(self.cyclic_keys)


def referenced_key(variable: str, keys: Iterable[str]) -> Optional[str]:
    """Return the logic key a variable path points into, if any."""
    key_set = keys if isinstance(keys, (set, frozenset, dict)) else set(keys)
    if variable in key_set:
        return variable
    head = variable.split(".", 1)[0]
    if head != variable and head in key_set:
        return head
    return None


class DependencyGraph:
    """
    Directed graph of logic keys; an edge ``a -> b`` means ``a`` references ``b``.

    Keys keep their declaration order, which makes every traversal
    deterministic.
    """

    def __init__(self, edges: Mapping[str, Sequence[str]]):
        self._keys: Tuple[str, ...] = tuple(edges)
        self._index = {key: i for i, key in enumerate(self._keys)}
        self._edges: Dict[str, Tuple[str, ...]] = {}
        for key, deps in edges.items():
            seen: Dict[str, None] = {}
            for dep in deps:
                if dep in self._index:
                    seen.setdefault(dep, None)
            self._edges[key] = tuple(seen)
        self._cyclic: Optional[Tuple[str, ...]] = None

    @classmethod
    def from_expressions(cls, logic: Mapping[str, LogicExpressions]) -> "DependencyGraph":
        """
        Build the graph from a logic section of key -> expression(s).

        Expressions that fail to parse contribute no edges; their syntax
        errors are reported by validation.
        """
        keys = set(logic)
        edges: Dict[str, List[str]] = {}
        for key, expressions in logic.items():
            if isinstance(expressions, str):
                expressions = (expressions,)
            deps: List[str] = []
            for expression in expressions:
                result = parse_expression(expression)
                if not result.success:
                    continue
                for variable in result.variables:
                    dep = referenced_key(variable, keys)
                    if dep is not None:
                        deps.append(dep)
            edges[key] = deps
        return cls(edges)

    @property
    def keys(self) -> Tuple[str, ...]:
        return self._keys

    def dependencies_of(self, key: str) -> Tuple[str, ...]:
        """Keys referenced directly by ``key``."""
        return self._edges.get(key, ())

    def dependents_of(self, key: str) -> Tuple[str, ...]:
        """Keys that reference ``key`` directly."""
        return tuple(k for k in self._keys if key in self._edges[k])

    def transitive_dependencies(self, key: str) -> Set[str]:
        """Every key reachable from ``key``. Contains ``key`` only if it is on a cycle."""
        found: Set[str] = set()
        stack = list(self.dependencies_of(key))
        while stack:
            dep = stack.pop()
            if dep in found:
                continue
            found.add(dep)
            stack.extend(self.dependencies_of(dep))
        return found

    def strongly_connected_components(self) -> List[Tuple[str, ...]]:
        """
        Tarjan's algorithm, iterative.

        Returns components in reverse topological order (dependencies
        before dependents).
        """
        index_of: Dict[str, int] = {}
        lowlink: Dict[str, int] = {}
        on_stack: Set[str] = set()
        stack: List[str] = []
        components: List[Tuple[str, ...]] = []
        counter = 0

        for root in self._keys:
            if root in index_of:
                continue
            work: List[Tuple[str, int]] = [(root, 0)]
            while work:
                node, child_i = work[-1]
                if child_i == 0 and node not in index_of:
                    index_of[node] = lowlink[node] = counter
                    counter += 1
                    stack.append(node)
                    on_stack.add(node)

                children = self._edges[node]
                if child_i < len(children):
                    work[-1] = (node, child_i + 1)
                    child = children[child_i]
                    if child not in index_of:
                        work.append((child, 0))
                    elif child in on_stack:
                        lowlink[node] = min(lowlink[node], index_of[child])
                    continue

                work.pop()
                if work:
                    parent = work[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[node])

                if lowlink[node] == index_of[node]:
                    component: List[str] = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    component.sort(key=self._index.__getitem__)
                    components.append(tuple(component))

        return components

    def cyclic_keys(self) -> Tuple[str, ...]:
        """Keys on any cycle, self-references included, in declaration order."""
        if self._cyclic is None:
            cyclic: Set[str] = set()
            for component in self.strongly_connected_components():
                if len(component) > 1:
                    cyclic.update(component)
                elif component[0] in self._edges[component[0]]:
                    cyclic.add(component[0])
            self._cyclic = tuple(k for k in self._keys if k in cyclic)
        return self._cyclic

    def topological_sort(self) -> TopologicalSortResult:
        """
        Order acyclic keys so each comes after the keys it references.

        Kahn's algorithm over the graph with cyclic keys removed; among keys
        that are ready at the same time, the one declared first goes first.
        """
        cyclic = set(self.cyclic_keys())
        remaining: Dict[str, int] = {}
        for key in self._keys:
            if key in cyclic:
                continue
            remaining[key] = sum(1 for dep in self._edges[key] if dep not in cyclic)

        ready = [self._index[key] for key, count in remaining.items() if count == 0]
        heapq.heapify(ready)
        order: List[str] = []
        while ready:
            key = self._keys[heapq.heappop(ready)]
            order.append(key)
            for dependent in self.dependents_of(key):
                if dependent in remaining:
                    remaining[dependent] -= 1
                    if remaining[dependent] == 0:
                        heapq.heappush(ready, self._index[dependent])

        if cyclic:
            logger.debug("Excluding cyclic logic keys from evaluation order: %s", ", ".join(self.cyclic_keys()))
        return TopologicalSortResult(order=tuple(order), cyclic_keys=self.cyclic_keys())


def topological_sort(logic: Mapping[str, LogicExpressions]) -> TopologicalSortResult:
    """
    Sort a logic section (key -> expression) into evaluation order.

    Example:
        >>> topological_sort({"b": "a and true", "a": "fields.x.value > 1"}).order
        ('a', 'b')
        >>> topological_sort({"a": "b", "b": "a"}).cyclic_keys
        ('a', 'b')
    """
    return DependencyGraph.from_expressions(logic).topological_sort()
