"""Typed configuration for the update service.

Configuration is built once at startup, either from a TOML file, from the
process environment, or both (environment wins), and then passed explicitly
to each component. Nothing below the CLI reads `os.environ`.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_int, get_str, get_table

__all__ = [
    "Config",
    "ConfigError",
    "ServerConfig",
    "SigningConfig",
    "StorageConfig",
    "load_config",
    "parse_connection_string",
    "DEFAULT_CONTAINER",
    "DEFAULT_MANIFEST_NAME",
    "DEFAULT_SAS_TTL_SECONDS",
    "CLOCK_SKEW_SECONDS",
]

# -----------------------------------------------------------------------------
# Defaults
# -----------------------------------------------------------------------------

DEFAULT_CONTAINER = "updates"
DEFAULT_MANIFEST_NAME = "manifest.json"
DEFAULT_SAS_TTL_SECONDS = 900

# Signed links start this far in the past to tolerate issuer/verifier drift.
CLOCK_SKEW_SECONDS = 5 * 60

SCENARIOS = ("has_update", "no_update", "forced", "error")


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Backing blob container and manifest location.

    `account` unset means no remote store: the manifest is read from
    `local_dir` and download links fall back to `/downloads/<name>`.
    """

    account: str | None = None
    container: str = DEFAULT_CONTAINER
    manifest_name: str = DEFAULT_MANIFEST_NAME
    local_dir: str = "."
    endpoint_suffix: str = "blob.core.windows.net"

    @property
    def is_remote(self) -> bool:
        return self.account is not None

    @property
    def container_url(self) -> str | None:
        if self.account is None:
            return None
        return f"https://{self.account}.{self.endpoint_suffix}/{self.container}"

    @property
    def local_manifest_path(self) -> Path:
        return Path(self.local_dir) / self.manifest_name


@dataclass(frozen=True, slots=True)
class SigningConfig:
    """Credentials for issuing time-limited read links.

    `account_key` is the base64 shared key used for per-request signing.
    `static_token` is a pre-issued query string appended as-is when no key is
    available.
    """

    account_key: str | None = None
    static_token: str | None = None
    ttl_seconds: int = DEFAULT_SAS_TTL_SECONDS
    clock_skew_seconds: int = CLOCK_SKEW_SECONDS

    def __repr__(self) -> str:
        key = "***" if self.account_key else None
        token = "***" if self.static_token else None
        return (
            f"SigningConfig(account_key={key!r}, static_token={token!r}, "
            f"ttl_seconds={self.ttl_seconds}, clock_skew_seconds={self.clock_skew_seconds})"
        )


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """Settings consumed by the request-facing layer."""

    base_url: str = ""
    # Test/ops hook forcing the applicability decision for every request.
    scenario: str | None = None


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    signing: SigningConfig = field(default_factory=SigningConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        storage: StrDict = get_table(data, "storage") or {}
        signing: StrDict = get_table(data, "signing") or {}
        server: StrDict = get_table(data, "server") or {}

        ttl = get_int(signing, "ttl_seconds")
        if ttl is not None and ttl <= 0:
            raise ValueError(f"signing.ttl_seconds must be positive, got {ttl}")

        scenario = get_str(server, "scenario")
        if scenario is not None and scenario not in SCENARIOS:
            raise ValueError(f"server.scenario must be one of {', '.join(SCENARIOS)}")

        return cls(
            storage=StorageConfig(
                account=get_str(storage, "account"),
                container=get_str(storage, "container") or DEFAULT_CONTAINER,
                manifest_name=get_str(storage, "manifest_name") or DEFAULT_MANIFEST_NAME,
                local_dir=get_str(storage, "local_dir") or ".",
                endpoint_suffix=get_str(storage, "endpoint_suffix") or "blob.core.windows.net",
            ),
            signing=SigningConfig(
                account_key=get_str(signing, "account_key"),
                static_token=get_str(signing, "static_token"),
                ttl_seconds=ttl or DEFAULT_SAS_TTL_SECONDS,
            ),
            server=ServerConfig(
                base_url=(get_str(server, "base_url") or "").rstrip("/"),
                scenario=scenario,
            ),
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> Config:
        """Create Config from environment variables only."""
        return cls().merged_with_env(environ)

    def merged_with_env(self, environ: Mapping[str, str]) -> Config:
        """Return a copy with any values present in `environ` applied on top."""
        conn = parse_connection_string(environ.get("AZURE_STORAGE_CONNECTION_STRING", ""))

        storage = self.storage
        account = _env(environ, "AZURE_STORAGE_ACCOUNT") or conn.get("AccountName")
        if account:
            storage = replace(storage, account=account)
        if container := _env(environ, "AZURE_STORAGE_CONTAINER"):
            storage = replace(storage, container=container)
        if manifest_name := _env(environ, "UPDATE_MANIFEST_BLOB"):
            storage = replace(storage, manifest_name=manifest_name)
        if local_dir := _env(environ, "UPDATE_LOCAL_DIR"):
            storage = replace(storage, local_dir=local_dir)
        if suffix := conn.get("EndpointSuffix"):
            storage = replace(storage, endpoint_suffix=f"blob.{suffix}")

        signing = self.signing
        if key := conn.get("AccountKey"):
            signing = replace(signing, account_key=key)
        if token := _env(environ, "AZURE_STORAGE_SAS"):
            signing = replace(signing, static_token=token)
        if ttl_raw := _env(environ, "PER_REQUEST_SAS_TTL_SEC"):
            try:
                ttl = int(ttl_raw)
            except ValueError:
                ttl = 0
            if ttl > 0:
                signing = replace(signing, ttl_seconds=ttl)

        server = self.server
        if base_url := _env(environ, "UPDATE_BASE_URL"):
            server = replace(server, base_url=base_url.rstrip("/"))
        scenario = _env(environ, "UPDATE_SCENARIO")
        if scenario in SCENARIOS:
            server = replace(server, scenario=scenario)

        return Config(storage=storage, signing=signing, server=server)


def _env(environ: Mapping[str, str], key: str) -> str | None:
    value = environ.get(key, "").strip()
    return value or None


def parse_connection_string(conn: str) -> dict[str, str]:
    """Split an `Key=Value;Key=Value` storage connection string.

    Values may themselves contain `=` (base64 keys end in padding), so only the
    first `=` of each part separates key from value.
    """
    out: dict[str, str] = {}
    for part in conn.split(";"):
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        key = key.strip()
        if key:
            out[key] = value.strip()
    return out


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling import and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to the TOML file

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))
