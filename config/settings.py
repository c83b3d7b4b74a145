"""配置管理

从 config/servers.yaml 加载配置，支持 AI 分身自动回复引擎。
"""
import os
import yaml
from pathlib import Path
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    base_url: str
    api_key: str
    models: List[str] = Field(default_factory=list)


class DatabaseConfig(BaseModel):
    url: str = "sqlite+aiosqlite:///./avatar.db"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    slow_request_threshold: float = 5.0


class CacheConfig(BaseModel):
    enabled: bool = True
    ttl_seconds: int = 600


# ============================================================================
# Embedding / Vector Index Configuration
# ============================================================================

class EmbeddingConfig(BaseModel):
    """Embedding service configuration."""
    provider: str = "auto"  # "openai", "gemini", "auto"
    model: str = ""
    dimension: Optional[int] = None  # None: model default
    api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    base_url: Optional[str] = None
    timeout: float = 30.0


class PineconeConfig(BaseModel):
    """Pinecone REST index configuration."""
    api_key: Optional[str] = None
    index: Optional[str] = None
    environment: Optional[str] = None
    host: Optional[str] = None  # overrides index/environment when set
    timeout: float = 30.0


class VectorIndexConfig(BaseModel):
    """Vector similarity index configuration."""
    provider: str = "sqlite"  # "sqlite", "pinecone"
    namespace: str = "messages"
    path: str = "~/.avatar/vectors.sqlite"
    pinecone: PineconeConfig = Field(default_factory=PineconeConfig)


# ============================================================================
# Avatar Engine Configuration
# ============================================================================

class CompletionConfig(BaseModel):
    """回复生成参数."""
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 500


class RetrievalConfig(BaseModel):
    """RAG 检索参数."""
    enabled: bool = True
    top_k: int = 5
    min_score: float = 0.0


class ProfileConfig(BaseModel):
    """沟通风格画像参数."""
    model: str = "gpt-4o"
    temperature: float = 0.3
    max_tokens: int = 200
    min_messages: int = 5
    max_samples: int = 50
    history_limit: int = 500


class AvatarConfig(BaseModel):
    """AI avatar engine configuration."""
    enabled: bool = True
    response_delay_seconds: float = 3.0
    history_limit: int = 10

    completion: CompletionConfig = Field(default_factory=CompletionConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    profile: ProfileConfig = Field(default_factory=ProfileConfig)


class Settings(BaseModel):
    servers: Dict[str, ServerConfig] = Field(default_factory=dict)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    vector_index: VectorIndexConfig = Field(default_factory=VectorIndexConfig)
    avatar: AvatarConfig = Field(default_factory=AvatarConfig)

    @classmethod
    def from_yaml(cls, path: str = "config/servers.yaml") -> "Settings":
        config_path = Path(path)
        if not config_path.exists():
            return cls().apply_env_fallbacks()

        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        servers = {
            name: ServerConfig(**srv)
            for name, srv in (data.get("servers") or {}).items()
        }

        settings = cls(
            servers=servers,
            database=DatabaseConfig(**(data.get("database") or {})),
            logging=LoggingConfig(**(data.get("logging") or {})),
            cache=CacheConfig(**(data.get("cache") or {})),
            embedding=EmbeddingConfig(**(data.get("embedding") or {})),
            vector_index=VectorIndexConfig(**(data.get("vector_index") or {})),
            avatar=AvatarConfig(**(data.get("avatar") or {})),
        )
        return settings.apply_env_fallbacks()

    def apply_env_fallbacks(self) -> "Settings":
        """Fill missing credentials from the process environment.

        YAML values always win; the environment only fills gaps.
        """
        openai_key = os.environ.get("OPENAI_API_KEY")

        if not self.embedding.api_key and openai_key:
            self.embedding.api_key = openai_key
        if not self.embedding.gemini_api_key:
            self.embedding.gemini_api_key = os.environ.get("GEMINI_API_KEY")

        pinecone = self.vector_index.pinecone
        pinecone.api_key = pinecone.api_key or os.environ.get("PINECONE_API_KEY")
        pinecone.index = pinecone.index or os.environ.get("PINECONE_INDEX")
        pinecone.environment = pinecone.environment or os.environ.get("PINECONE_ENVIRONMENT")
        pinecone.host = pinecone.host or os.environ.get("PINECONE_HOST")

        # No completion server configured: serve the avatar models from OpenAI
        if not self.servers and openai_key:
            models = [self.avatar.completion.model]
            if self.avatar.profile.model not in models:
                models.append(self.avatar.profile.model)
            self.servers["openai"] = ServerConfig(
                base_url="https://api.openai.com/v1",
                api_key=openai_key,
                models=models,
            )

        return self


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_yaml()
    return _settings


def reload_settings(config_path: str = "config/servers.yaml") -> Settings:
    global _settings
    _settings = Settings.from_yaml(config_path)
    return _settings
