from __future__ import annotations

import contextvars
import logging
import uuid
from typing import Any

from pythonjsonlogger.json import JsonFormatter


TEXT_FORMAT = "[%(levelname)s] %(message)s"

# 每次命令行运行一个 id，写入每条日志
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("run_id", default=None)


def start_run() -> str:
    run_id = uuid.uuid4().hex
    _run_id.set(run_id)
    return run_id


class RunIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _run_id.get()
        return True


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())

    handler = logging.StreamHandler()
    if fmt.lower() == "json":
        formatter: logging.Formatter = JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s %(run_id)s"
        )
    else:
        # 命令行默认输出：级别放在方括号内，不输出 logger 名与线程名
        formatter = logging.Formatter(TEXT_FORMAT)
    handler.setFormatter(formatter)
    handler.addFilter(RunIdFilter())

    # 重置 handlers，避免重复输出
    root.handlers = [handler]


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_extra(**kwargs: Any) -> dict[str, Any]:
    # 统一将附加信息写入 structured logging 的 extra 字段
    return {"extra": kwargs}
