"""Controller connection configuration."""
from .settings import ControllerConfig, load_config, find_config_file

__all__ = ["ControllerConfig", "load_config", "find_config_file"]
