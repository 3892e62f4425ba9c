from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    async_backend: Literal["asyncio", "trio"] = "asyncio"
    """Async library used by `Graph.run_sync` to drive a graph outside an event loop."""

    offload_sync_compute: bool = False
    """Run synchronous compute functions in a worker thread instead of the event loop."""

    validate_before_run: bool = False
    """Statically check the graph for cycles and dangling dependencies before each run."""

    model_config = SettingsConfigDict(env_prefix="DAGRUN_", frozen=True)
