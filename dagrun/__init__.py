from .config import Config
from .exceptions import (
    CyclicGraphError,
    DagrunError,
    DuplicateTaskError,
    SchedulingError,
    UnknownDependencyError,
)
from .graph import Graph
from .runner import Runner
from .task import Task, TaskArgs
from .topology import Topology

__all__ = [
    "Config",
    "CyclicGraphError",
    "DagrunError",
    "DuplicateTaskError",
    "Graph",
    "Runner",
    "SchedulingError",
    "Task",
    "TaskArgs",
    "Topology",
    "UnknownDependencyError",
]
