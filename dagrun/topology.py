from typing import TYPE_CHECKING

import networkx as nx

from .exceptions import CyclicGraphError, UnknownDependencyError

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Mapping

    from .task import Task


class Topology:
    """
    A networkx view of a graph's tasks, with an edge from every dependency to each
    task that consumes it. Dependencies that are not registered tasks still appear as
    nodes so that they can be reported.
    """

    def __init__(self, tasks: "Mapping[str, Task]") -> None:
        self.tasks = tasks
        self.digraph = nx.DiGraph()

        for name in tasks:
            self.digraph.add_node(name)

        for name, task in tasks.items():
            for dep in task.dependencies:
                self.digraph.add_edge(dep, name)

    @property
    def missing(self) -> dict[str, tuple[str, ...]]:
        """Dependencies, per task, that do not name a registered task."""
        return {
            name: dangling
            for name, task in self.tasks.items()
            if (dangling := tuple(d for d in task.dependencies if d not in self.tasks))
        }

    @property
    def cycles(self) -> list[tuple[str, ...]]:
        return sorted((tuple(cycle) for cycle in nx.simple_cycles(self.digraph)), key=len)

    def order(self) -> list[str]:
        """
        Returns the task names in an order where every task follows its dependencies.
        Raises if the graph references unregistered tasks or contains a cycle.
        """
        if missing := self.missing:
            name, deps = next(iter(missing.items()))
            raise UnknownDependencyError(name, deps[0])

        try:
            return list(nx.topological_sort(self.digraph))
        except nx.NetworkXUnfeasible as e:
            raise CyclicGraphError(self.cycles) from e

    def __str__(self) -> str:
        return "\n".join(nx.generate_network_text(self.digraph, vertical_chains=True))
