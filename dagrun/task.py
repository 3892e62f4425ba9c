from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Awaitable, Iterator

    TaskFn = Callable[["TaskArgs"], Any | Awaitable[Any]]


class Task(BaseModel):
    name: str
    dependencies: tuple[str, ...] = Field(default_factory=tuple)
    compute: Callable[..., Any]

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def is_root(self) -> bool:
        return not self.dependencies


class TaskArgs(Mapping[str, Any]):
    """
    The results of a task's declared dependencies, handed to its compute function.
    Reading anything that was not declared as a dependency is an error, even if the
    graph happens to have computed it already.
    """

    __slots__ = ("_task", "_values")

    def __init__(self, task: Task, values: Mapping[str, Any]) -> None:
        self._task = task
        self._values = {dep: values[dep] for dep in task.dependencies}

    def __getitem__(self, key: str) -> Any:
        try:
            return self._values[key]
        except KeyError:
            raise KeyError(
                f"Task '{self._task.name}' does not depend on '{key}'. Declared"
                f" dependencies: {list(self._task.dependencies)}"
            ) from None

    def __iter__(self) -> "Iterator[str]":
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"TaskArgs({self._task.name!r}, {self._values!r})"
