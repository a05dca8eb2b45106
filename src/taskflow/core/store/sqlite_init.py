"""SQLite 数据库初始化

Task Store 与 Notification Store 分属不同服务，各自使用独立数据库文件，
彼此之间没有任何外键引用（user_id 等为不透明标识）。
"""

import aiosqlite

# ---- Task Store ----

_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id     TEXT PRIMARY KEY,
    title       TEXT NOT NULL,
    description TEXT,
    due_date    TEXT,
    priority    TEXT NOT NULL DEFAULT 'MEDIUM',
    status      TEXT NOT NULL DEFAULT 'TODO',
    creator_id  TEXT NOT NULL,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
"""

_TASK_ASSIGNEES_DDL = """
CREATE TABLE IF NOT EXISTS task_assignees (
    task_id     TEXT NOT NULL,
    user_id     TEXT NOT NULL,
    assigned_at TEXT NOT NULL,

    PRIMARY KEY (task_id, user_id),
    FOREIGN KEY (task_id) REFERENCES tasks(task_id) ON DELETE CASCADE
);
"""

_COMMENTS_DDL = """
CREATE TABLE IF NOT EXISTS comments (
    comment_id  TEXT PRIMARY KEY,
    task_id     TEXT NOT NULL,
    author_id   TEXT NOT NULL,
    content     TEXT NOT NULL,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL,

    FOREIGN KEY (task_id) REFERENCES tasks(task_id) ON DELETE CASCADE
);
"""

# task_history 表 append-only
_TASK_HISTORY_DDL = """
CREATE TABLE IF NOT EXISTS task_history (
    entry_id    TEXT PRIMARY KEY,
    task_id     TEXT NOT NULL,
    user_id     TEXT NOT NULL,
    action      TEXT NOT NULL,
    changes     TEXT NOT NULL DEFAULT '{}',
    created_at  TEXT NOT NULL,

    FOREIGN KEY (task_id) REFERENCES tasks(task_id) ON DELETE CASCADE
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_creator_id ON tasks(creator_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks(created_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_task_assignees_user_id ON task_assignees(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_comments_task_id ON comments(task_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_task_history_task_id ON task_history(task_id, created_at);",
]

# ---- Notification Store ----

_NOTIFICATIONS_DDL = """
CREATE TABLE IF NOT EXISTS notifications (
    notification_id TEXT PRIMARY KEY,
    user_id         TEXT NOT NULL,
    type            TEXT NOT NULL,
    title           TEXT NOT NULL,
    message         TEXT NOT NULL,
    task_id         TEXT,
    comment_id      TEXT,
    metadata        TEXT NOT NULL DEFAULT '{}',
    read            INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL,
    dedup_key       TEXT NOT NULL
);
"""

_NOTIFICATIONS_INDEXES = [
    # 幂等键唯一约束（insert-if-absent 的依据）
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_notifications_dedup_key ON notifications(dedup_key);",
    "CREATE INDEX IF NOT EXISTS idx_notifications_user_created ON notifications(user_id, created_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_notifications_user_read ON notifications(user_id, read);",
]


async def _apply_pragmas(conn: aiosqlite.Connection) -> None:
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")


async def init_tasks_db(conn: aiosqlite.Connection) -> None:
    """初始化任务库：PRAGMA + 四张表 + 索引

    Args:
        conn: aiosqlite 数据库连接
    """
    await _apply_pragmas(conn)

    await conn.execute(_TASKS_DDL)
    await conn.execute(_TASK_ASSIGNEES_DDL)
    await conn.execute(_COMMENTS_DDL)
    await conn.execute(_TASK_HISTORY_DDL)

    for idx_sql in _TASKS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def init_notifications_db(conn: aiosqlite.Connection) -> None:
    """初始化通知库：PRAGMA + notifications 表 + 索引"""
    await _apply_pragmas(conn)

    await conn.execute(_NOTIFICATIONS_DDL)
    for idx_sql in _NOTIFICATIONS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
