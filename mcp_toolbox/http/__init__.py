"""HTTP transport: one-shot JSON-RPC exchange and SSE push channel."""

from .channels import PushChannel, PushChannelRegistry
from .main import create_app

__all__ = ["PushChannel", "PushChannelRegistry", "create_app"]
