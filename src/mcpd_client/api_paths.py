"""mcpd daemon API paths."""

from typing import Optional
from urllib.parse import quote, urlencode

API_BASE = "/api/v1"
SERVERS = f"{API_BASE}/servers"
HEALTH_ALL = f"{API_BASE}/health/servers"


def _segment(value: str) -> str:
    return quote(value, safe="")


def _with_cursor(path: str, cursor: Optional[str]) -> str:
    return f"{path}?{urlencode({'cursor': cursor}, quote_via=quote)}" if cursor else path


def server_tools(server_name: str) -> str:
    return f"{SERVERS}/{_segment(server_name)}/tools"


def tool_call(server_name: str, tool_name: str) -> str:
    return f"{SERVERS}/{_segment(server_name)}/tools/{_segment(tool_name)}"


def server_prompts(server_name: str, cursor: Optional[str] = None) -> str:
    return _with_cursor(f"{SERVERS}/{_segment(server_name)}/prompts", cursor)


def prompt_generate(server_name: str, prompt_name: str) -> str:
    return f"{SERVERS}/{_segment(server_name)}/prompts/{_segment(prompt_name)}"


def server_resources(server_name: str, cursor: Optional[str] = None) -> str:
    return _with_cursor(f"{SERVERS}/{_segment(server_name)}/resources", cursor)


def server_resource_templates(server_name: str, cursor: Optional[str] = None) -> str:
    return _with_cursor(f"{SERVERS}/{_segment(server_name)}/resources/templates", cursor)


def resource_content(server_name: str, uri: str) -> str:
    return f"{SERVERS}/{_segment(server_name)}/resources/content?{urlencode({'uri': uri}, quote_via=quote)}"


def health_server(server_name: str) -> str:
    return f"{HEALTH_ALL}/{_segment(server_name)}"
