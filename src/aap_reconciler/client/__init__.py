"""Controller REST client: transport and per-resource CRUD."""
from .transport import ControllerTransport
from .executor import ResourceClient, ControllerClient

__all__ = ["ControllerTransport", "ResourceClient", "ControllerClient"]
