from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from relman.core.clock import Clock, SystemClock
from relman.core.config import Config, load_config
from relman.core.errors import ErrorCode
from relman.core.result import Err
from relman.output.console import ConsoleProtocol, RichConsole
from relman.services.updates import UpdateService
from relman.storage.blob import BlobStore
from relman.storage.store import ObjectStore

CONFIG_ENV = "RELMAN_CONFIG"
DEFAULT_CONFIG_NAME = "relman.toml"


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: Config
    console: ConsoleProtocol
    store: ObjectStore | None
    service: UpdateService
    clock: Clock


def _config_path() -> Path | None:
    explicit = os.environ.get(CONFIG_ENV, "").strip()
    if explicit:
        return Path(explicit).expanduser()
    default = Path.cwd() / DEFAULT_CONFIG_NAME
    return default if default.is_file() else None


def build_context(*, stderr: bool = True) -> CLIContext:
    """Load config (file, then environment on top) and wire the service.

    Diagnostics go to stderr by default so JSON output on stdout stays clean.
    """
    console = RichConsole(stderr=stderr)

    config = Config()
    path = _config_path()
    if path is not None:
        loaded = load_config(path)
        if isinstance(loaded, Err):
            console.error(loaded.error.message)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))
        config = loaded.value
    config = config.merged_with_env(os.environ)

    clock = SystemClock()
    store = BlobStore.from_config(config, clock=clock)
    service = UpdateService(config=config, store=store, console=console, clock=clock)
    return CLIContext(config=config, console=console, store=store, service=service, clock=clock)
