"""向量索引

支持的后端：
    - sqlite-vec 本地文件索引
    - Pinecone REST API
"""

from .base import VectorIndex, VectorMatch, VectorRecord
from .factory import create_vector_index

__all__ = ["VectorIndex", "VectorMatch", "VectorRecord", "create_vector_index"]
