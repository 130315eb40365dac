"""
speechnorm 설정 로더입니다.

config.yaml → SNM_ 환경변수 병합 → AppConfig 검증 순으로 설정을 구성합니다.
CLI 한 번 실행에 한 번 로드하는 용도이므로 파일 감시나 재로드는 하지 않습니다.

환경변수 규칙:
    SNM_<SECTION>_<FIELD>=<YAML 스칼라>
    SNM_LOUDNESS_TARGET_LKFS=-16        -> loudness.target_lkfs = -16
    SNM_LOUDNESS_LOUDNESS_COMPRESSOR=true -> loudness.loudness_compressor = True
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from speechnorm.config.schema import AppConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "SNM_"

# get()에서 "값 없음"과 None 값을 구분하기 위한 표식
_MISSING = object()


class ConfigLoadError(Exception):
    """설정을 구성하지 못했을 때의 기본 에러입니다."""
    pass


class ConfigValidationError(ConfigLoadError):
    """병합된 설정이 AppConfig 스키마를 통과하지 못한 경우입니다."""
    pass


class ConfigFileNotFoundError(ConfigLoadError):
    pass


class ConfigManager:
    """
    AppConfig를 구성하고 dot-notation 조회를 제공합니다.

    사용 예시:
        >>> manager = ConfigManager()
        >>> config = manager.load("config.yaml")
        >>> manager.get("loudness.target_lkfs")
        -14.0
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        # 테스트에서 os.environ 대신 dict를 넘길 수 있음
        self._environ = os.environ if environ is None else environ
        self._config: Optional[AppConfig] = None

    def load(self, filepath: str | Path) -> AppConfig:
        """
        YAML 파일에 환경변수 오버라이드를 덮어쓴 설정을 검증해 반환합니다.

        에러:
            ConfigFileNotFoundError: 파일이 없는 경우
            ConfigLoadError: 읽기/YAML 파싱 실패, 최상위가 매핑이 아닌 경우
            ConfigValidationError: 스키마 검증 실패
        """
        filepath = Path(filepath)
        if not filepath.is_file():
            raise ConfigFileNotFoundError(f"설정 파일을 찾을 수 없습니다: {filepath}")

        sections = _read_yaml_sections(filepath)
        config = self._build(sections)
        logger.info(
            f"설정 로드: {filepath} (target_lkfs={config.loudness.target_lkfs}, "
            f"compressor={config.loudness.loudness_compressor})"
        )
        return config

    def load_defaults(self) -> AppConfig:
        """파일 없이 기본값에 환경변수 오버라이드만 적용합니다."""
        config = self._build({})
        logger.info("설정 파일 없이 기본값 사용")
        return config

    def get(self, key: str, default: Any = None) -> Any:
        """
        "loudness.target_lkfs" 형식의 키로 현재 설정값을 조회합니다.

        에러:
            RuntimeError: load() / load_defaults() 호출 전
        """
        if self._config is None:
            raise RuntimeError("설정이 로드되지 않았습니다. load()를 먼저 호출하세요.")

        node: Any = self._config.model_dump()
        for part in key.split("."):
            node = node.get(part, _MISSING) if isinstance(node, dict) else _MISSING
            if node is _MISSING:
                return default
        return node

    def validate_schema(self, raw_config: dict) -> bool:
        """dict가 AppConfig 스키마를 통과하는지 여부만 반환합니다."""
        try:
            AppConfig(**raw_config)
        except ValidationError as exc:
            logger.warning(f"스키마 검증 실패: {exc.error_count()}개 항목")
            return False
        return True

    def _build(self, sections: dict) -> AppConfig:
        for section, field, value in _env_overrides(self._environ):
            if not isinstance(sections.get(section), dict):
                sections[section] = {}
            sections[section][field] = value
            logger.info(f"환경변수 오버라이드: {section}.{field} = {value!r}")

        try:
            config = AppConfig(**sections)
        except ValidationError as exc:
            for error in exc.errors():
                location = ".".join(str(part) for part in error["loc"])
                logger.error(f"설정 검증 실패: {location}: {error['msg']}")
            raise ConfigValidationError(
                f"설정 스키마 검증 실패: {exc.error_count()}개 항목"
            ) from exc

        self._config = config
        return config


# =============================================================================
# 모듈 레벨 헬퍼 함수
# =============================================================================

def _read_yaml_sections(filepath: Path) -> dict:
    """YAML 파일을 섹션 dict로 읽습니다. 빈 파일은 빈 dict."""
    try:
        with open(filepath, "r", encoding="utf-8") as config_file:
            data = yaml.safe_load(config_file)
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"YAML 파싱 에러: {filepath}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"설정 파일 읽기 실패: {filepath}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigLoadError(
            f"설정 파일 최상위는 매핑이어야 합니다: {filepath} ({type(data).__name__})"
        )
    return data


def _env_overrides(environ: Mapping[str, str]):
    """
    SNM_ 환경변수를 (section, field, value) 튜플로 생성합니다.

    첫 번째 밑줄이 섹션과 필드를 가르며, 값은 YAML 스칼라로 해석합니다
    ("true" → True, "-16" → -16, "0.002" → 0.002, 그 외 문자열).
    """
    for key in sorted(environ):
        if not key.startswith(ENV_PREFIX):
            continue
        section, _, field = key[len(ENV_PREFIX):].lower().partition("_")
        if not section or not field:
            logger.debug(f"환경변수 {key} 무시 (SNM_<SECTION>_<FIELD> 형식 아님)")
            continue
        yield section, field, _parse_env_value(environ[key])


def _parse_env_value(raw: str) -> Any:
    try:
        value = yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw
    # 매핑/시퀀스로 해석되는 값은 문자열 그대로 전달
    if isinstance(value, (dict, list)) or value is None:
        return raw
    return value
