"""
Tools Package

Tool operations exposed to the tool-dispatch layer:

- openrouter_tools: chat/text completion with conversation persistence,
  model search/info/validation, provider endpoints, conversation history
"""

from .openrouter_tools import ModelNotFoundError, OpenRouterToolset, create_toolset

__all__ = ["ModelNotFoundError", "OpenRouterToolset", "create_toolset"]
