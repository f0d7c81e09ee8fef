"""MCP toolbox server package."""

__version__ = "1.0.0"

from mcp_toolbox.config import ServerInfo
from mcp_toolbox.service.dispatcher import ProtocolDispatcher

__all__ = ["ProtocolDispatcher", "ServerInfo", "__version__"]
