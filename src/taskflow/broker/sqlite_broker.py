"""SQLite 持久化 broker -- at-least-once 投递

broker_messages 为 append-only 消息日志；broker_receipts 记录每个
(消息, consumer group) 的投递状态：尝试次数、租约到期时间、ack 时间、死信标记。

- 不同 consumer group 各自收到每条消息（fan-out）
- 同一 group 内的多个 consumer 通过 BEGIN IMMEDIATE 竞争领取
- 领取后未 ack 的消息在租约到期后重新可见（重投）
"""

import asyncio
import json
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite
import structlog
from pydantic import BaseModel, Field
from ulid import ULID

log = structlog.get_logger()

_MESSAGES_DDL = """
CREATE TABLE IF NOT EXISTS broker_messages (
    seq          INTEGER PRIMARY KEY AUTOINCREMENT,
    message_id   TEXT NOT NULL UNIQUE,
    topic        TEXT NOT NULL,
    payload      TEXT NOT NULL,
    published_at TEXT NOT NULL
);
"""

_RECEIPTS_DDL = """
CREATE TABLE IF NOT EXISTS broker_receipts (
    message_id     TEXT NOT NULL,
    consumer_group TEXT NOT NULL,
    attempts       INTEGER NOT NULL DEFAULT 0,
    leased_until   REAL NOT NULL DEFAULT 0,
    acked_at       TEXT,
    dead_lettered  INTEGER NOT NULL DEFAULT 0,
    last_error     TEXT,

    PRIMARY KEY (message_id, consumer_group),
    FOREIGN KEY (message_id) REFERENCES broker_messages(message_id)
);
"""

_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_broker_messages_topic ON broker_messages(topic, seq);",
    "CREATE INDEX IF NOT EXISTS idx_broker_receipts_dead ON broker_receipts(consumer_group, dead_lettered);",
]


class BrokerMessage(BaseModel):
    """已领取的消息"""

    message_id: str
    topic: str
    payload: dict[str, Any] = Field(default_factory=dict)
    published_at: datetime
    attempts: int = Field(default=1, description="含本次在内的投递次数")


class DeadLetter(BaseModel):
    """死信记录"""

    message_id: str
    topic: str
    consumer_group: str
    attempts: int
    last_error: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    published_at: datetime


async def init_broker_db(conn: aiosqlite.Connection) -> None:
    """初始化 broker 库：PRAGMA + 两张表 + 索引"""
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    await conn.execute(_MESSAGES_DDL)
    await conn.execute(_RECEIPTS_DDL)
    for idx_sql in _INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


def _decode_payload(raw: str) -> dict[str, Any]:
    """死信/统计场景下尽量解码 payload，不可解码时原样保留"""
    try:
        value = json.loads(raw)
    except ValueError:
        return {"raw": raw}
    return value if isinstance(value, dict) else {"raw": value}


class SqliteBroker:
    """SQLite 持久化 broker

    同一连接上的写操作通过 asyncio.Lock 串行化，避免不同协程的事务交错提交。
    """

    def __init__(self, conn: aiosqlite.Connection, lease_s: float = 30.0) -> None:
        self._conn = conn
        self._lease_s = lease_s
        self._lock = asyncio.Lock()

    @property
    def conn(self) -> aiosqlite.Connection:
        return self._conn

    async def publish(self, topic: str, payload: dict[str, Any]) -> str:
        """持久化一条消息，提交后即视为已交付给 broker

        Returns:
            消息 ID（ULID）
        """
        message_id = str(ULID())
        async with self._lock:
            try:
                await self._conn.execute(
                    """
                    INSERT INTO broker_messages (message_id, topic, payload, published_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        message_id,
                        topic,
                        json.dumps(payload, ensure_ascii=False),
                        datetime.now(UTC).isoformat(),
                    ),
                )
                await self._conn.commit()
            except Exception:
                await self._conn.rollback()
                raise
        return message_id

    async def claim(
        self,
        group: str,
        topics: list[str] | tuple[str, ...],
        limit: int = 10,
        lease_s: float | None = None,
    ) -> list[BrokerMessage]:
        """为 consumer group 领取一批可见消息，并设置租约

        可见：该 group 尚无投递记录，或未 ack、未死信且租约已过期。
        按发布顺序返回。
        """
        if not topics:
            return []
        lease = self._lease_s if lease_s is None else lease_s
        now = time.time()
        placeholders = ", ".join("?" for _ in topics)

        async with self._lock:
            try:
                await self._conn.execute("BEGIN IMMEDIATE")
                cursor = await self._conn.execute(
                    f"""
                    SELECT m.message_id, m.topic, m.payload, m.published_at,
                           COALESCE(r.attempts, 0)
                    FROM broker_messages m
                    LEFT JOIN broker_receipts r
                      ON r.message_id = m.message_id AND r.consumer_group = ?
                    WHERE m.topic IN ({placeholders})
                      AND (
                        r.message_id IS NULL
                        OR (r.acked_at IS NULL AND r.dead_lettered = 0 AND r.leased_until <= ?)
                      )
                    ORDER BY m.seq ASC
                    LIMIT ?
                    """,
                    (group, *topics, now, limit),
                )
                rows = await cursor.fetchall()

                messages: list[BrokerMessage] = []
                for row in rows:
                    await self._conn.execute(
                        """
                        INSERT INTO broker_receipts
                            (message_id, consumer_group, attempts, leased_until)
                        VALUES (?, ?, 1, ?)
                        ON CONFLICT(message_id, consumer_group) DO UPDATE SET
                            attempts = attempts + 1,
                            leased_until = excluded.leased_until
                        """,
                        (row[0], group, now + lease),
                    )
                    messages.append(
                        BrokerMessage(
                            message_id=row[0],
                            topic=row[1],
                            payload=_decode_payload(row[2]),
                            published_at=datetime.fromisoformat(row[3]),
                            attempts=row[4] + 1,
                        )
                    )
                await self._conn.commit()
            except Exception:
                await self._conn.rollback()
                raise
        return messages

    async def ack(self, group: str, message_id: str) -> bool:
        """确认消息已处理完成"""
        async with self._lock:
            try:
                cursor = await self._conn.execute(
                    """
                    UPDATE broker_receipts SET acked_at = ?
                    WHERE message_id = ? AND consumer_group = ? AND acked_at IS NULL
                    """,
                    (datetime.now(UTC).isoformat(), message_id, group),
                )
                await self._conn.commit()
            except Exception:
                await self._conn.rollback()
                raise
        return cursor.rowcount > 0

    async def nack(
        self,
        group: str,
        message_id: str,
        error: str,
        max_attempts: int,
        retry_backoff_s: float = 0.0,
    ) -> bool:
        """处理失败：未达最大次数则按指数退避重新可见，否则转入死信

        Returns:
            True 如果消息已被转入死信
        """
        async with self._lock:
            try:
                cursor = await self._conn.execute(
                    """
                    SELECT attempts FROM broker_receipts
                    WHERE message_id = ? AND consumer_group = ?
                    """,
                    (message_id, group),
                )
                row = await cursor.fetchone()
                attempts = row[0] if row else 0

                if attempts >= max_attempts:
                    await self._conn.execute(
                        """
                        UPDATE broker_receipts SET dead_lettered = 1, last_error = ?
                        WHERE message_id = ? AND consumer_group = ?
                        """,
                        (error, message_id, group),
                    )
                    dead = True
                else:
                    delay = min(self._lease_s, retry_backoff_s * (2 ** max(attempts - 1, 0)))
                    await self._conn.execute(
                        """
                        UPDATE broker_receipts SET leased_until = ?, last_error = ?
                        WHERE message_id = ? AND consumer_group = ?
                        """,
                        (time.time() + delay, error, message_id, group),
                    )
                    dead = False
                await self._conn.commit()
            except Exception:
                await self._conn.rollback()
                raise

        if dead:
            log.warning(
                "broker_message_dead_lettered",
                message_id=message_id,
                consumer_group=group,
                attempts=attempts,
                error=error,
            )
        return dead

    async def dead_letter(self, group: str, message_id: str, error: str) -> None:
        """直接将消息转入死信（不可重试的消息）"""
        async with self._lock:
            try:
                await self._conn.execute(
                    """
                    INSERT INTO broker_receipts
                        (message_id, consumer_group, attempts, dead_lettered, last_error)
                    VALUES (?, ?, 1, 1, ?)
                    ON CONFLICT(message_id, consumer_group) DO UPDATE SET
                        dead_lettered = 1,
                        last_error = excluded.last_error
                    """,
                    (message_id, group, error),
                )
                await self._conn.commit()
            except Exception:
                await self._conn.rollback()
                raise
        log.warning(
            "broker_message_dead_lettered",
            message_id=message_id,
            consumer_group=group,
            error=error,
        )

    async def list_dead_letters(self, group: str | None = None) -> list[DeadLetter]:
        sql = """
            SELECT r.message_id, m.topic, r.consumer_group, r.attempts,
                   r.last_error, m.payload, m.published_at
            FROM broker_receipts r
            JOIN broker_messages m ON m.message_id = r.message_id
            WHERE r.dead_lettered = 1
        """
        params: list[str] = []
        if group is not None:
            sql += " AND r.consumer_group = ?"
            params.append(group)
        sql += " ORDER BY m.seq ASC"

        cursor = await self._conn.execute(sql, params)
        rows = await cursor.fetchall()
        return [
            DeadLetter(
                message_id=row[0],
                topic=row[1],
                consumer_group=row[2],
                attempts=row[3],
                last_error=row[4],
                payload=_decode_payload(row[5]),
                published_at=datetime.fromisoformat(row[6]),
            )
            for row in rows
        ]

    async def requeue(self, message_id: str, group: str | None = None) -> int:
        """把死信消息重新放回队列（尝试次数清零）

        Returns:
            被恢复的投递记录数
        """
        sql = """
            UPDATE broker_receipts
            SET dead_lettered = 0, attempts = 0, leased_until = 0, last_error = NULL
            WHERE message_id = ? AND dead_lettered = 1
        """
        params: list[str] = [message_id]
        if group is not None:
            sql += " AND consumer_group = ?"
            params.append(group)

        async with self._lock:
            try:
                cursor = await self._conn.execute(sql, params)
                await self._conn.commit()
            except Exception:
                await self._conn.rollback()
                raise
        return cursor.rowcount

    async def pending_count(self, group: str, topics: list[str] | tuple[str, ...]) -> int:
        """该 group 尚未完成（未 ack 且未死信）的消息数，含租约中的消息"""
        if not topics:
            return 0
        placeholders = ", ".join("?" for _ in topics)
        cursor = await self._conn.execute(
            f"""
            SELECT COUNT(*)
            FROM broker_messages m
            LEFT JOIN broker_receipts r
              ON r.message_id = m.message_id AND r.consumer_group = ?
            WHERE m.topic IN ({placeholders})
              AND (r.message_id IS NULL OR (r.acked_at IS NULL AND r.dead_lettered = 0))
            """,
            (group, *topics),
        )
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def stats(self) -> dict[str, Any]:
        """按 topic 统计消息数，按 group 统计 ack/死信/进行中数量"""
        cursor = await self._conn.execute(
            "SELECT topic, COUNT(*) FROM broker_messages GROUP BY topic ORDER BY topic"
        )
        topics = {row[0]: row[1] for row in await cursor.fetchall()}

        cursor = await self._conn.execute(
            """
            SELECT consumer_group,
                   SUM(CASE WHEN acked_at IS NOT NULL THEN 1 ELSE 0 END),
                   SUM(dead_lettered),
                   SUM(CASE WHEN acked_at IS NULL AND dead_lettered = 0 THEN 1 ELSE 0 END)
            FROM broker_receipts
            GROUP BY consumer_group
            ORDER BY consumer_group
            """
        )
        groups = {
            row[0]: {"acked": row[1] or 0, "dead_lettered": row[2] or 0, "in_flight": row[3] or 0}
            for row in await cursor.fetchall()
        }
        return {"topics": topics, "groups": groups}


async def create_broker(db_path: str, lease_s: float = 30.0) -> SqliteBroker:
    """创建 broker（独立数据库连接）"""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_broker_db(conn)
    return SqliteBroker(conn, lease_s=lease_s)
