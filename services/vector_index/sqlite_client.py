"""本地 sqlite-vec 向量索引

在单个 SQLite 文件中保存向量与元数据，使用余弦距离做暴力检索，
元数据过滤通过 json_extract 等值匹配实现。适合开发与单机部署。
"""
import asyncio
import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiosqlite
import sqlite_vec

from .base import VectorIndex, VectorMatch, VectorRecord
from config.logging import get_logger
from services.errors import VectorIndexError


logger = get_logger(__name__)

_FILTER_KEY = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class SqliteVectorIndex(VectorIndex):
    """sqlite-vec backed index with the same contract as Pinecone.

    Scores are cosine similarities (``1 - cosine distance``).
    """

    def __init__(self, path: str, dimension: int, namespace: str = "messages"):
        """Initialize the local index.

        Args:
            path: Database file path (``~`` expanded) or ``:memory:``.
            dimension: Vector length accepted by the index.
            namespace: Default namespace for all operations.
        """
        super().__init__(namespace)
        self.path = path if path == ":memory:" else str(Path(path).expanduser())
        self.dimension = dimension
        self._db: Optional[aiosqlite.Connection] = None
        self._init_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config, dimension: int) -> "SqliteVectorIndex":
        """Create an index from ``VectorIndexConfig``."""
        return cls(path=config.path, dimension=dimension, namespace=config.namespace)

    @property
    def provider(self) -> str:
        return "sqlite"

    async def initialize(self) -> None:
        """Open the database, load sqlite-vec and create the table."""
        async with self._init_lock:
            if self._db is not None:
                return

            if self.path != ":memory:":
                Path(self.path).parent.mkdir(parents=True, exist_ok=True)

            db = await aiosqlite.connect(self.path, check_same_thread=False)
            try:
                await db.enable_load_extension(True)
                await db.load_extension(sqlite_vec.loadable_path())
                await db.enable_load_extension(False)
            except Exception as e:
                await db.close()
                raise VectorIndexError(
                    f"sqlite-vec extension is required but could not be loaded: {e}"
                ) from e

            if self.path != ":memory:":
                await db.execute("PRAGMA journal_mode=WAL")
            await db.execute("PRAGMA busy_timeout=5000")
            await db.execute("""
                CREATE TABLE IF NOT EXISTS vectors (
                    namespace TEXT NOT NULL,
                    id TEXT NOT NULL,
                    embedding BLOB NOT NULL,
                    metadata TEXT NOT NULL DEFAULT '{}',
                    PRIMARY KEY (namespace, id)
                )
            """)
            await db.commit()
            self._db = db
            logger.info(f"[VECTOR] Vector table ready at {self.path} (dim={self.dimension})")

    async def _get_db(self) -> aiosqlite.Connection:
        if self._db is None:
            await self.initialize()
        return self._db

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    def _check_dimension(self, values: List[float]) -> None:
        if len(values) != self.dimension:
            raise VectorIndexError(
                f"vector has {len(values)} dimensions, index expects {self.dimension}"
            )

    async def upsert(self, records: List[VectorRecord], namespace: Optional[str] = None) -> None:
        if not records:
            return
        for record in records:
            self._check_dimension(record.values)

        db = await self._get_db()
        ns = self._namespace(namespace)
        try:
            await db.executemany(
                """
                INSERT OR REPLACE INTO vectors (namespace, id, embedding, metadata)
                VALUES (?, ?, ?, ?)
                """,
                [
                    (
                        ns,
                        record.id,
                        sqlite_vec.serialize_float32(record.values),
                        json.dumps(record.metadata, ensure_ascii=False),
                    )
                    for record in records
                ],
            )
            await db.commit()
        except aiosqlite.Error as e:
            raise VectorIndexError(f"sqlite upsert failed: {e}") from e

        logger.debug(f"[VECTOR] Upserted {len(records)} vector(s) into {ns}")

    async def query(
        self,
        vector: List[float],
        top_k: int = 5,
        filter: Optional[Dict[str, Any]] = None,
        namespace: Optional[str] = None,
    ) -> List[VectorMatch]:
        self._check_dimension(vector)

        where = ["namespace = ?"]
        params: List[Any] = [sqlite_vec.serialize_float32(vector), self._namespace(namespace)]
        for key, value in (filter or {}).items():
            if not _FILTER_KEY.match(key):
                raise VectorIndexError(f"invalid metadata filter key: {key!r}")
            where.append(f"json_extract(metadata, '$.{key}') = ?")
            params.append(value)
        params.append(top_k)

        db = await self._get_db()
        try:
            cursor = await db.execute(
                f"""
                SELECT id, metadata, vec_distance_cosine(embedding, ?) AS distance
                FROM vectors
                WHERE {' AND '.join(where)}
                ORDER BY distance ASC
                LIMIT ?
                """,
                params,
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise VectorIndexError(f"sqlite query failed: {e}") from e

        return [
            VectorMatch(id=row[0], score=1.0 - float(row[2]), metadata=json.loads(row[1]))
            for row in rows
            if row[2] is not None
        ]

    async def delete(self, ids: List[str], namespace: Optional[str] = None) -> None:
        if not ids:
            return
        db = await self._get_db()
        ns = self._namespace(namespace)
        try:
            await db.executemany(
                "DELETE FROM vectors WHERE namespace = ? AND id = ?",
                [(ns, record_id) for record_id in ids],
            )
            await db.commit()
        except aiosqlite.Error as e:
            raise VectorIndexError(f"sqlite delete failed: {e}") from e

    async def count(self, namespace: Optional[str] = None) -> int:
        db = await self._get_db()
        cursor = await db.execute(
            "SELECT COUNT(*) FROM vectors WHERE namespace = ?", (self._namespace(namespace),)
        )
        row = await cursor.fetchone()
        return int(row[0])
