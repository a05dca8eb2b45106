"""CommentStore SQLite 实现"""

from datetime import datetime

import aiosqlite

from ..models.comment import Comment

_COMMENT_COLUMNS = "comment_id, task_id, author_id, content, created_at, updated_at"


class SqliteCommentStore:
    """CommentStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_comment(self, comment: Comment) -> None:
        """创建评论记录（不自动提交事务）"""
        await self._conn.execute(
            f"""
            INSERT INTO comments ({_COMMENT_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                comment.comment_id,
                comment.task_id,
                comment.author_id,
                comment.content,
                comment.created_at.isoformat(),
                comment.updated_at.isoformat(),
            ),
        )

    async def get_comment(self, comment_id: str) -> Comment | None:
        cursor = await self._conn.execute(
            f"SELECT {_COMMENT_COLUMNS} FROM comments WHERE comment_id = ?",
            (comment_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_comment(row)

    async def list_comments(
        self,
        task_id: str,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[Comment], int]:
        """查询任务评论，按 created_at 倒序分页"""
        cursor = await self._conn.execute(
            "SELECT COUNT(*) FROM comments WHERE task_id = ?",
            (task_id,),
        )
        count_row = await cursor.fetchone()
        total = count_row[0] if count_row else 0

        cursor = await self._conn.execute(
            f"""
            SELECT {_COMMENT_COLUMNS} FROM comments
            WHERE task_id = ?
            ORDER BY created_at DESC, comment_id DESC
            LIMIT ? OFFSET ?
            """,
            (task_id, limit, offset),
        )
        rows = await cursor.fetchall()
        return [self._row_to_comment(row) for row in rows], total

    @staticmethod
    def _row_to_comment(row: aiosqlite.Row) -> Comment:
        """将数据库行转换为 Comment 模型"""
        return Comment(
            comment_id=row[0],
            task_id=row[1],
            author_id=row[2],
            content=row[3],
            created_at=datetime.fromisoformat(row[4]),
            updated_at=datetime.fromisoformat(row[5]),
        )
