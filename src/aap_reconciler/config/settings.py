"""Controller connection settings loaded from YAML and the environment."""
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import AnyHttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_API_PREFIX = "/api/controller/v2"
DEFAULT_TIMEOUT = 30.0

# Environment variable -> ControllerConfig field
ENV_VARS = {
    "AAP_HOST": "host",
    "AAP_USERNAME": "username",
    "AAP_PASSWORD": "password",
    "AAP_TOKEN": "token",
    "AAP_INSECURE": "insecure",
    "AAP_TIMEOUT": "timeout",
    "AAP_API_PREFIX": "api_prefix",
}

_URL_ADAPTER = TypeAdapter(AnyHttpUrl)


@dataclass
class ControllerConfig:
    """Connection settings for one controller."""
    host: str
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None
    insecure: bool = False
    timeout: float = DEFAULT_TIMEOUT
    api_prefix: str = DEFAULT_API_PREFIX

    def __post_init__(self):
        if not self.host:
            raise ConfigError(
                "Controller host must be configured (controller.yaml or AAP_HOST)"
            )
        try:
            _URL_ADAPTER.validate_python(self.host)
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid controller host {self.host!r}: {e}") from e

        self.host = self.host.rstrip("/")
        prefix = self.api_prefix.strip("/")
        self.api_prefix = f"/{prefix}" if prefix else ""
        self.insecure = _to_bool(self.insecure)
        self.timeout = float(self.timeout)

    @property
    def base_url(self) -> str:
        """Host plus API prefix, without a trailing slash."""
        return f"{self.host}{self.api_prefix}"

    @property
    def auth_mode(self) -> str:
        """Active auth scheme: token, basic or none."""
        if self.token:
            return "token"
        if self.username and self.password:
            return "basic"
        return "none"

    def __repr__(self) -> str:
        # Keep secrets out of logs and tracebacks
        return (
            f"ControllerConfig(host={self.host!r}, username={self.username!r}, "
            f"auth={self.auth_mode}, insecure={self.insecure}, timeout={self.timeout})"
        )


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def find_config_file() -> Optional[Path]:
    """Look for controller.yaml in the usual places."""
    search_paths = [
        Path.cwd() / "configs" / "controller.yaml",
        Path.cwd() / "controller.yaml",
        Path.home() / ".config" / "aap-reconciler" / "controller.yaml",
    ]

    for path in search_paths:
        if path.exists():
            return path
    return None


def load_config(
    config_path: Optional[str] = None,
    env: Optional[dict[str, str]] = None,
) -> ControllerConfig:
    """
    Build a ControllerConfig.

    Sources are applied in order, later ones winning:
    1. Field defaults
    2. YAML file (``config_path`` or the first controller.yaml found);
       settings may sit at the top level or under a ``controller:`` key
    3. Environment variables (AAP_HOST, AAP_USERNAME, AAP_PASSWORD,
       AAP_TOKEN, AAP_INSECURE, AAP_TIMEOUT, AAP_API_PREFIX)

    Args:
        config_path: Explicit YAML path; must exist if given
        env: Environment mapping, defaults to os.environ

    Raises:
        ConfigError: If the file is unreadable or no host is configured
    """
    env = os.environ if env is None else env
    values: dict[str, Any] = {}

    path = Path(config_path) if config_path else find_config_file()
    if path is not None:
        values.update(_read_yaml(path))

    for var, name in ENV_VARS.items():
        if env.get(var):
            values[name] = env[var]

    known = {f.name for f in fields(ControllerConfig)}
    unknown = set(values) - known
    if unknown:
        raise ConfigError(f"Unknown controller setting(s): {', '.join(sorted(unknown))}")

    if not values.get("host"):
        raise ConfigError(
            "Controller host must be configured (controller.yaml or AAP_HOST)"
        )

    config = ControllerConfig(**values)
    logger.info(f"Loaded controller config: {config!r}")
    return config


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read controller config {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Controller config {path} must be a mapping")

    section = data.get("controller", data)
    if not isinstance(section, dict):
        raise ConfigError(f"'controller' section in {path} must be a mapping")

    logger.debug(f"Read controller settings from {path}")
    return dict(section)
