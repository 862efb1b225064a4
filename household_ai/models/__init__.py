"""Provider client adapters."""

from .anthropic_client import AnthropicModelClient
from .base import BaseModelClient, ImagePayload, ModelResponse, translate_error
from .catalog import AgentCatalog, AgentSpec, load_agent_catalog
from .factory import ClientFactory, build_client, get_registered_providers
from .google_client import GoogleModelClient
from .local_client import LocalMode, LocalModelClient, detect_mode
from .openai_client import OpenAIModelClient

__all__ = [
    "BaseModelClient",
    "ImagePayload",
    "ModelResponse",
    "translate_error",
    "AgentCatalog",
    "AgentSpec",
    "load_agent_catalog",
    "ClientFactory",
    "build_client",
    "get_registered_providers",
    "AnthropicModelClient",
    "GoogleModelClient",
    "LocalMode",
    "LocalModelClient",
    "detect_mode",
    "OpenAIModelClient",
]
