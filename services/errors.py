"""分身引擎异常定义

组件层（画像、检索、生成、向量同步）捕获这些异常并降级；
只有回复流水线把失败作为结构化结果返回。
"""


class AvatarEngineError(RuntimeError):
    """Base class for avatar engine errors."""


class ConfigurationError(AvatarEngineError):
    """A required credential, server or model is not configured.

    Raised where the capability is used, never at import or startup.
    """


class EmbeddingError(AvatarEngineError):
    """Embedding request failed or returned an unusable vector."""


class VectorIndexError(AvatarEngineError):
    """Vector index request failed."""


class CompletionError(AvatarEngineError):
    """Completion request failed, timed out or returned a bad payload."""
