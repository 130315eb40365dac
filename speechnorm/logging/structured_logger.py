"""
speechnorm 로깅 설정 모듈입니다.

모든 레코드에 session_id와 component(speechnorm 하위 패키지 이름: audio, synthesis, config ...)를
붙여서 JSON(python-json-logger) 또는 텍스트로 출력합니다.
system.log_to_file이 켜져 있으면 log_dir/speechnorm.log 순환 파일에도 기록합니다.

JSON 레코드 예시:
    {"time": "2026-01-05T10:12:03", "level": "INFO", "logger": "speechnorm.synthesis.post_processor",
     "component": "synthesis", "session_id": "3f2c...", "message": "발화 정규화 완료: ..."}
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
import uuid
from pathlib import Path
from typing import Optional, TextIO

from pythonjsonlogger import jsonlogger

from speechnorm.config.schema import AppConfig

LOG_FILENAME = "speechnorm.log"

# 순환 정책: 10MB × 5개
_LOG_MAX_BYTES = 10 * 1024 * 1024
_LOG_BACKUP_COUNT = 5

_PACKAGE_NAME = "speechnorm"

_session_id = ""


def setup_logging(
    config: AppConfig,
    session_id: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> list[logging.Handler]:
    """
    root 로거에 콘솔(및 선택적으로 파일) 핸들러를 설정합니다.

    여러 번 호출하면 이전 핸들러를 닫고 교체합니다.

    파라미터:
        config: AppConfig (system 섹션 사용)
        session_id: 세션 식별자. 없으면 config.system.session_id, 그것도 비면 UUID4
        stream: 콘솔 출력 스트림 (기본: stderr)

    반환값:
        list[logging.Handler]: 등록한 핸들러 목록
    """
    global _session_id
    system = config.system
    _session_id = session_id or system.session_id or str(uuid.uuid4())
    level = logging.getLevelName(system.log_level)

    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stderr)]
    if system.log_to_file:
        log_path = Path(system.log_dir) / LOG_FILENAME
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=_LOG_MAX_BYTES,
            backupCount=_LOG_BACKUP_COUNT,
            encoding="utf-8",
        ))

    context = _ContextFilter(_session_id)
    formatter = _make_formatter(system.log_format)

    root = logging.getLogger()
    for old in root.handlers[:]:
        root.removeHandler(old)
        old.close()
    root.setLevel(level)

    for handler in handlers:
        handler.setLevel(level)
        handler.addFilter(context)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    logging.getLogger(__name__).debug(
        f"로깅 설정: level={system.log_level}, format={system.log_format}, "
        f"file={'on' if system.log_to_file else 'off'}"
    )
    return handlers


def component_of(logger_name: str) -> str:
    """'speechnorm.audio.bs1770' → 'audio'. speechnorm 밖의 로거는 최상위 이름."""
    head, _, rest = logger_name.partition(".")
    if head == _PACKAGE_NAME and rest:
        return rest.split(".", 1)[0]
    return head


class _ContextFilter(logging.Filter):
    """레코드에 session_id / component 속성을 추가합니다."""

    def __init__(self, session_id: str) -> None:
        super().__init__()
        self._session_id = session_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = self._session_id
        record.component = component_of(record.name)
        return True


def _make_formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return jsonlogger.JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(component)s %(session_id)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            rename_fields={"asctime": "time", "levelname": "level", "name": "logger"},
        )
    return logging.Formatter(
        "%(asctime)s %(levelname)-7s [%(component)s] %(message)s",
        datefmt="%H:%M:%S",
    )


class StructuredLogger:
    """speechnorm 로거 접근용 팩토리입니다."""

    @staticmethod
    def get(name: str) -> logging.Logger:
        return logging.getLogger(name)

    @staticmethod
    def get_session_id() -> str:
        """마지막 setup_logging() 호출의 세션 ID."""
        return _session_id
