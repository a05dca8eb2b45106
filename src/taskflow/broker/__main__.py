"""CLI 入口模块 -- python -m taskflow.broker <command>

支持的命令：
  stats                  按 topic / consumer group 输出统计
  dead-letters [group]   列出死信消息
  requeue <message_id>   将死信消息重新放回队列
"""

import asyncio
import json
import sys

from taskflow.core.config import get_broker_db_path

from .sqlite_broker import create_broker

_USAGE = """用法: python -m taskflow.broker <command>
命令:
  stats                  按 topic / consumer group 输出统计
  dead-letters [group]   列出死信消息
  requeue <message_id>   将死信消息重新放回队列"""


def main(argv: list[str] | None = None) -> None:
    """CLI 主入口"""
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print(_USAGE)
        sys.exit(1)

    command = args[0]

    if command == "stats":
        asyncio.run(show_stats())
    elif command == "dead-letters":
        asyncio.run(show_dead_letters(args[1] if len(args) > 1 else None))
    elif command == "requeue":
        if len(args) < 2:
            print("缺少参数: requeue <message_id>")
            sys.exit(1)
        asyncio.run(requeue(args[1]))
    else:
        print(f"未知命令: {command}")
        print("可用命令: stats, dead-letters, requeue")
        sys.exit(1)


async def show_stats() -> None:
    broker = await create_broker(get_broker_db_path())
    try:
        stats = await broker.stats()
        print(json.dumps(stats, indent=2, ensure_ascii=False))
    finally:
        await broker.conn.close()


async def show_dead_letters(group: str | None) -> None:
    broker = await create_broker(get_broker_db_path())
    try:
        dead_letters = await broker.list_dead_letters(group)
        if not dead_letters:
            print("没有死信消息")
            return
        for item in dead_letters:
            print(
                f"{item.message_id}  {item.topic}  group={item.consumer_group}  "
                f"attempts={item.attempts}  error={item.last_error}"
            )
    finally:
        await broker.conn.close()


async def requeue(message_id: str) -> None:
    broker = await create_broker(get_broker_db_path())
    try:
        restored = await broker.requeue(message_id)
        print(f"已恢复 {restored} 条投递记录: {message_id}")
    finally:
        await broker.conn.close()


if __name__ == "__main__":
    main()
