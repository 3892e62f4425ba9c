from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable, Mapping
    from typing import Any


class DagrunError(Exception):
    def __init__(self, *args: "Any", **kwargs: "Any") -> None:
        super().__init__(*args, **kwargs)


##
## GRAPH CONSTRUCTION
##


class GraphBuildError(DagrunError):
    def __init__(self, message: str) -> None:
        super().__init__(message)


class DuplicateTaskError(GraphBuildError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Task '{name}' already exists")


class UnknownDependencyError(GraphBuildError):
    def __init__(self, name: str, dependency: str) -> None:
        self.name = name
        self.dependency = dependency
        super().__init__(f"Task '{name}' depends on missing task '{dependency}'")


class CyclicGraphError(GraphBuildError):
    def __init__(self, cycles: list[tuple[str, ...]]) -> None:
        self.cycles = cycles
        cycle_str = "\n  ".join(" -> ".join(cycle) for cycle in cycles)
        super().__init__(
            "Graphs cannot contain dependency cycles. Offending cycles:\n"
            f"  {cycle_str}"
        )


##
## GRAPH EXECUTION
##


class GraphExecutionError(DagrunError):
    def __init__(self, message: str) -> None:
        super().__init__(message)


class SchedulingError(GraphExecutionError):
    """
    Raised when no task is running, none is ready to start, and the graph is not yet
    complete. A cycle and a dependency on an unregistered task look identical to the
    scheduler; `missing` tells them apart when the cause is the latter.
    """

    def __init__(
        self,
        blocked: "Iterable[str]" = (),
        missing: "Mapping[str, Iterable[str]] | None" = None,
    ) -> None:
        self.blocked: tuple[str, ...] = tuple(blocked)
        self.missing: dict[str, tuple[str, ...]] = {
            name: tuple(deps) for name, deps in (missing or {}).items()
        }
        super().__init__("Cycle or missing dependency detected")

        if self.blocked:
            self.add_note(
                "Blocked tasks: " + ", ".join(f"'{name}'" for name in self.blocked)
            )
        for name, deps in self.missing.items():
            self.add_note(
                f"Task '{name}' depends on unregistered tasks: "
                + ", ".join(f"'{dep}'" for dep in deps)
            )
