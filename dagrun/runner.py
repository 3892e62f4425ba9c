"""
The scheduling loop that drives a graph to completion.
"""

import inspect
import logging
import math
import warnings
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import anyio
import anyio.to_thread

from .config import Config
from .exceptions import SchedulingError
from .task import TaskArgs

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Mapping

    from anyio.abc import TaskGroup
    from anyio.streams.memory import (
        MemoryObjectReceiveStream,
        MemoryObjectSendStream,
    )

    from .task import Task

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Settlement:
    name: str
    value: Any = None
    error: Exception | None = None


@dataclass
class RunState:
    """Bookkeeping for a single run. Never shared between runs."""

    fulfilled: set[str] = field(default_factory=set)
    pending: dict[str, float] = field(default_factory=dict)
    results: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_cache(
        cls, names: list[str], cache: "Mapping[str, Any]"
    ) -> "RunState":
        state = cls()
        for name in names:
            if name in cache:
                state.fulfilled.add(name)
                state.results[name] = cache[name]

        return state


class Runner:
    """
    Runs every task of a graph as soon as all of its dependencies are fulfilled,
    returning a mapping of task name to result.

    Tasks are started in `task_group` if one is given. When a task fails, tasks still
    in flight are not cancelled: in a supplied task group they are abandoned and keep
    running after `run` raises, otherwise `run` raises once they have settled. Either
    way their outcomes are discarded.

    Subclass and override `compute` to wrap task execution, then hand the subclass to
    a `Graph` as its runner factory.
    """

    def __init__(
        self,
        tasks: "Mapping[str, Task]",
        cache: "Mapping[str, Any] | None" = None,
        *,
        config: Config | None = None,
        task_group: "TaskGroup | None" = None,
    ) -> None:
        self.tasks = tasks
        self.names: list[str] = list(tasks)
        self.cache: "Mapping[str, Any]" = cache if cache is not None else {}
        self.config = config or Config()
        self.task_group = task_group

        if unknown := [key for key in self.cache if key not in self.tasks]:
            warnings.warn(
                f"Ignoring cached values for unknown tasks: {unknown}.", stacklevel=2
            )

    async def run(self) -> dict[str, Any]:
        state = RunState.from_cache(self.names, self.cache)
        send_stream, receive_stream = anyio.create_memory_object_stream[Settlement](
            math.inf
        )

        async with send_stream, receive_stream:
            if self.task_group is not None:
                failure = await self._schedule(
                    state, self.task_group, send_stream, receive_stream
                )
            else:
                async with anyio.create_task_group() as tg:
                    failure = await self._schedule(
                        state, tg, send_stream, receive_stream
                    )

        if failure is not None:
            raise failure

        return state.results

    async def compute(self, task: "Task", args: TaskArgs) -> Any:
        """Invoke a task's compute function and await its outcome if needed."""
        if self.config.offload_sync_compute and not inspect.iscoroutinefunction(
            task.compute
        ):
            result = await anyio.to_thread.run_sync(task.compute, args)
        else:
            result = task.compute(args)

        if inspect.isawaitable(result):
            result = await result

        return result

    async def _schedule(
        self,
        state: RunState,
        tg: "TaskGroup",
        send_stream: "MemoryObjectSendStream[Settlement]",
        receive_stream: "MemoryObjectReceiveStream[Settlement]",
    ) -> Exception | None:
        while len(state.fulfilled) < len(self.names):
            self._queue(state, tg, send_stream)

            if not state.pending:
                return self._deadlock(state)

            # the only suspension point: wait for whichever task settles first, then
            # take every other settlement that is already waiting
            settlement = await receive_stream.receive()
            while settlement is not None:
                if (error := self._settle(state, settlement)) is not None:
                    return error

                try:
                    settlement = receive_stream.receive_nowait()
                except anyio.WouldBlock:
                    settlement = None

        return None

    def _queue(
        self,
        state: RunState,
        tg: "TaskGroup",
        send_stream: "MemoryObjectSendStream[Settlement]",
    ) -> None:
        for name in self.names:
            if (
                name not in state.fulfilled
                and name not in state.pending
                and all(dep in state.fulfilled for dep in self.tasks[name].dependencies)
            ):
                logger.debug("Starting task '%s'.", name)
                state.pending[name] = anyio.current_time()
                tg.start_soon(self._execute, state, name, send_stream, name=name)

    async def _execute(
        self,
        state: RunState,
        name: str,
        send_stream: "MemoryObjectSendStream[Settlement]",
    ) -> None:
        task = self.tasks[name]
        args = TaskArgs(task, state.results)

        try:
            settlement = Settlement(name, value=await self.compute(task, args))
        except Exception as e:
            settlement = Settlement(name, error=e)

        try:
            send_stream.send_nowait(settlement)
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            # the run this task belonged to has already failed
            logger.debug("Discarding outcome of abandoned task '%s'.", name)

    def _settle(self, state: RunState, settlement: Settlement) -> Exception | None:
        started = state.pending.pop(settlement.name)
        elapsed = anyio.current_time() - started

        if settlement.error is not None:
            logger.debug(
                "Task '%s' failed after %.3fs: %r",
                settlement.name,
                elapsed,
                settlement.error,
            )
            return settlement.error

        logger.debug("Task '%s' completed in %.3fs.", settlement.name, elapsed)
        state.results[settlement.name] = settlement.value
        state.fulfilled.add(settlement.name)
        return None

    def _deadlock(self, state: RunState) -> SchedulingError:
        blocked = [name for name in self.names if name not in state.fulfilled]
        missing = {
            name: dangling
            for name in blocked
            if (
                dangling := [
                    dep for dep in self.tasks[name].dependencies if dep not in self.tasks
                ]
            )
        }
        logger.debug("No runnable tasks remain; blocked: %s", blocked)
        return SchedulingError(blocked, missing)
