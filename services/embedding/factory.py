"""嵌入服务提供者工厂

根据配置创建相应的嵌入服务提供者实例。
"""
from typing import TYPE_CHECKING

from .base import EmbeddingProvider
from .gemini_client import GeminiEmbeddingClient
from .openai_client import OpenAIEmbeddingClient
from config.logging import get_logger

if TYPE_CHECKING:
    from config.settings import EmbeddingConfig

logger = get_logger(__name__)


def create_embedding_provider(config: "EmbeddingConfig") -> EmbeddingProvider:
    """Create an embedding provider based on configuration.

    Provider selection logic for "auto":
    1. OpenAI key present → openai
    2. Gemini key present → gemini
    3. Otherwise openai, which raises ConfigurationError on first use

    No network request is made here.

    Raises:
        ValueError: If the provider name is unknown.
    """
    provider = config.provider.lower()

    if provider == "auto":
        provider = detect_provider(config)
        logger.info(f"[EMBED] Auto-detected provider: {provider}")

    if provider == "openai":
        return OpenAIEmbeddingClient.from_config(config)
    elif provider == "gemini":
        return GeminiEmbeddingClient.from_config(config)
    else:
        raise ValueError(f"Unknown embedding provider: {provider}")


def detect_provider(config: "EmbeddingConfig") -> str:
    if config.api_key:
        return "openai"
    if config.gemini_api_key:
        return "gemini"
    logger.warning("[EMBED] No embedding credentials configured, retrieval will be skipped")
    return "openai"
