"""structlog 配置

gateway 与 notification worker 共用同一套配置，每条日志带 service 字段，
多进程部署时可按来源过滤。

TASKFLOW_LOG_FORMAT: "dev"（默认，ConsoleRenderer）| "json"
TASKFLOW_LOG_LEVEL: 默认 INFO
LOGFIRE_SEND_TO_LOGFIRE: "true" 时启用 Logfire，其余情况只输出本地日志
"""

import logging
import os
import sys

import structlog

# 第三方库的 DEBUG/INFO 日志过于嘈杂
_QUIET_LOGGERS = ("aiosqlite", "httpx", "httpcore")


def _service_stamper(service: str) -> structlog.types.Processor:
    def stamp(_logger, _method, event_dict):
        event_dict.setdefault("service", service)
        return event_dict

    return stamp


def configure_logging(
    service: str,
    *,
    log_format: str | None = None,
    log_level: str | None = None,
) -> None:
    """初始化 structlog 与标准库 logging

    参数未显式给出时读取环境变量。标准库 handler 输出到 stderr，
    CLI 的 stdout 只留给命令结果。
    """
    log_format = log_format or os.environ.get("TASKFLOW_LOG_FORMAT", "dev")
    level = getattr(
        logging,
        (log_level or os.environ.get("TASKFLOW_LOG_LEVEL", "INFO")).upper(),
        logging.INFO,
    )

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _service_stamper(service),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        pre_chain.append(structlog.processors.format_exc_info)
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer(
            ensure_ascii=False
        )
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain)
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def configure_logfire(service: str, app=None) -> bool:
    """按需启用 Logfire APM，返回是否启用成功

    初始化失败只记 warning，不影响服务启动。
    """
    if os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower() != "true":
        return False
    try:
        import logfire

        logfire.configure(service_name=service)
        if app is not None:
            logfire.instrument_fastapi(app)
    except Exception as exc:
        structlog.get_logger().warning("logfire_init_failed", service=service, error=str(exc))
        return False
    return True
