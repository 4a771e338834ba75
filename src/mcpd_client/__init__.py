"""mcpd client - Tool discovery, health gating and agent functions.

The client talks to the mcpd daemon over HTTP, gates every call on
server health, and turns tool schemas into validated, callable
functions for AI agent frameworks.
"""

from mcpd_client.client import McpdClient
from mcpd_client.discovery import ServerDiscovery
from mcpd_client.dynamic_caller import ServerProxy, ServersNamespace
from mcpd_client.function_builder import AgentFunction, FunctionBuilder

__all__ = [
    "McpdClient",
    "ServerDiscovery",
    "ServerProxy",
    "ServersNamespace",
    "AgentFunction",
    "FunctionBuilder",
]
