"""
Graph module for the dagrun framework.
"""

import logging
from functools import partial
from types import MappingProxyType
from typing import TYPE_CHECKING

import anyio
import sniffio

from .config import Config
from .exceptions import DuplicateTaskError, UnknownDependencyError
from .runner import Runner
from .task import Task
from .topology import Topology

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Callable, Iterable, Iterator, Mapping
    from typing import Any

    from anyio.abc import TaskGroup

    from .task import TaskFn

    RunnerFactory = Callable[..., Runner]

logger = logging.getLogger(__name__)


class Graph:
    """
    An immutable set of named tasks and the dependencies between them.

    Every `add` validates the new task against the tasks added so far and returns a
    new graph, leaving the original untouched:

    ```python
    graph = (
        Graph()
        .add("a", lambda _: 1)
        .add("b", lambda _: 2)
        .add("c", ["a", "b"], lambda args: args["a"] + args["b"])
    )

    results = await graph.run()  # {"a": 1, "b": 2, "c": 3}
    results = await graph.run({"a": 10})  # {"a": 10, "b": 2, "c": 12}
    ```

    Runs are carried out by a runner built from `runner_factory`, which is called as
    `runner_factory(tasks, cache, config=..., task_group=...)`.
    """

    def __init__(
        self,
        tasks: "Mapping[str, Task] | None" = None,
        *,
        runner_factory: "RunnerFactory" = Runner,
        config: Config | None = None,
    ) -> None:
        self._tasks: dict[str, Task] = dict(tasks or {})
        self.runner_factory = runner_factory
        self.config = config or Config()

    @property
    def tasks(self) -> "Mapping[str, Task]":
        return MappingProxyType(self._tasks)

    @property
    def names(self) -> list[str]:
        return list(self._tasks)

    def has(self, name: str) -> bool:
        return name in self._tasks

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> "Iterator[str]":
        return iter(self._tasks)

    def __repr__(self) -> str:
        return f"Graph({self.names!r})"

    def add(
        self,
        name: str,
        dependencies: "Iterable[str] | str | TaskFn",
        compute: "TaskFn | None" = None,
    ) -> "Graph":
        """
        Return a new graph with an additional task. The dependencies may be omitted,
        in which case the second argument is the compute function.
        """
        if compute is None:
            compute, dependencies = dependencies, ()
        elif isinstance(dependencies, str):
            dependencies = (dependencies,)

        if self.has(name):
            raise DuplicateTaskError(name)

        dependencies = tuple(dependencies)
        for dep in dependencies:
            if not self.has(dep):
                raise UnknownDependencyError(name, dep)

        task = Task(name=name, dependencies=dependencies, compute=compute)
        return type(self)(
            {**self._tasks, name: task},
            runner_factory=self.runner_factory,
            config=self.config,
        )

    @property
    def topology(self) -> Topology:
        return Topology(self._tasks)

    def validate(self) -> "Graph":
        """
        Statically check that every dependency is registered and that the graph is
        acyclic. Graphs built solely with `add` always pass.
        """
        self.topology.order()
        return self

    def runner(
        self,
        cache: "Mapping[str, Any] | None" = None,
        *,
        runner_factory: "RunnerFactory | None" = None,
        task_group: "TaskGroup | None" = None,
    ) -> Runner:
        factory = runner_factory or self.runner_factory
        return factory(
            self.tasks, cache or {}, config=self.config, task_group=task_group
        )

    async def run(
        self,
        cache: "Mapping[str, Any] | None" = None,
        *,
        runner_factory: "RunnerFactory | None" = None,
        task_group: "TaskGroup | None" = None,
    ) -> dict[str, "Any"]:
        """
        Run every task not present in `cache` and return all results keyed by task
        name. The first task to fail aborts the run with its own exception.
        """
        if self.config.validate_before_run:
            self.validate()

        logger.debug("Running graph of %d tasks.", len(self))
        return await self.runner(
            cache, runner_factory=runner_factory, task_group=task_group
        ).run()

    def run_sync(
        self,
        cache: "Mapping[str, Any] | None" = None,
        *,
        runner_factory: "RunnerFactory | None" = None,
    ) -> dict[str, "Any"]:
        """Run the graph to completion on a new event loop."""
        try:
            sniffio.current_async_library()
        except sniffio.AsyncLibraryNotFoundError:
            return anyio.run(
                partial(self.run, cache, runner_factory=runner_factory),
                backend=self.config.async_backend,
            )

        raise RuntimeError(
            "Calling `run_sync` within an event loop is forbidden as it would block"
            " the loop. Use `await graph.run()` instead."
        )
