"""Shared constants for the OpenRouter bridge.

Import-safe module with no dependencies; can be imported from anywhere
without risk of circular imports.
"""

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENROUTER_MODELS_PATH = "/models"
OPENROUTER_CHAT_PATH = "/chat/completions"
OPENROUTER_COMPLETIONS_PATH = "/completions"

DEFAULT_HTTP_REFERER = "https://github.com/heltonteixeira/openrouterai"
DEFAULT_APP_TITLE = "MCP OpenRouter Server"

BRIDGE_HOME_ENV = "OPENROUTER_BRIDGE_HOME"
DEFAULT_BRIDGE_HOME = "~/.openrouter-bridge"

# Catalog snapshots older than this are treated as absent.
CATALOG_TTL_SECONDS = 3600

# Window budget used when the model's own context length is unknown.
DEFAULT_MAX_CONTEXT_TOKENS = 200000

DEFAULT_REQUEST_TIMEOUT = 60.0
