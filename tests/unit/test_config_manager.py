"""
ConfigManager / AppConfig 단위 테스트

검증 항목:
- YAML 로드 및 Pydantic 스키마 검증
- 누락 파일, 잘못된 YAML, 범위 밖 값 처리
- SNM_ 환경변수 오버라이드 (타입 변환 포함)
- dot-notation 조회 및 로드 전 조회 에러
"""

from __future__ import annotations

import os

import pytest
import yaml

from speechnorm.config.config_manager import (
    ConfigFileNotFoundError,
    ConfigLoadError,
    ConfigManager,
    ConfigValidationError,
)
from speechnorm.config.schema import AppConfig


# =============================================================================
# 테스트 헬퍼
# =============================================================================

def _write_yaml(tmp_path, data, name: str = "config.yaml"):
    """딕셔너리를 YAML 파일로 저장하고 경로를 반환합니다."""
    filepath = tmp_path / name
    filepath.write_text(yaml.safe_dump(data), encoding="utf-8")
    return filepath


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    """테스트 환경의 SNM_ 환경변수를 제거합니다."""
    for key in list(os.environ):
        if key.startswith("SNM_"):
            monkeypatch.delenv(key)


# =============================================================================
# 스키마 테스트
# =============================================================================

class TestSchema:
    def test_defaults(self):
        config = AppConfig()
        assert config.loudness.target_lkfs == -14.0
        assert config.loudness.silence_rms_floor == pytest.approx(2e-3)
        assert config.loudness.loudness_compressor is False
        assert config.loudness.k_weighting is True
        assert config.loudness.gating_block_windows == 4
        assert config.loudness.absolute_gate_lkfs == -70.0
        assert config.loudness.relative_gate_db == -10.0
        assert config.system.log_level == "INFO"
        assert config.output.output_dir == "output/audio"

    def test_log_level_normalized(self):
        config = AppConfig(**{"system": {"log_level": "debug"}})
        assert config.system.log_level == "DEBUG"

    @pytest.mark.parametrize("section,field,value", [
        ("system", "log_level", "VERBOSE"),
        ("system", "log_format", "xml"),
        ("loudness", "target_lkfs", 3.0),
        ("loudness", "silence_rms_floor", -0.1),
        ("loudness", "gating_block_windows", 0),
        ("loudness", "relative_gate_db", 5.0),
    ])
    def test_invalid_values_rejected(self, section, field, value):
        assert ConfigManager().validate_schema({section: {field: value}}) is False

    def test_valid_dict_accepted(self):
        assert ConfigManager().validate_schema({"loudness": {"target_lkfs": -23.0}}) is True


# =============================================================================
# 파일 로드 테스트
# =============================================================================

class TestLoad:
    def test_load_yaml(self, tmp_path):
        filepath = _write_yaml(tmp_path, {
            "system": {"log_level": "WARNING"},
            "loudness": {"target_lkfs": -16.0, "loudness_compressor": True},
            "output": {"output_dir": "out"},
        })
        manager = ConfigManager()
        config = manager.load(filepath)

        assert config.loudness.target_lkfs == -16.0
        assert config.loudness.loudness_compressor is True
        assert config.system.log_level == "WARNING"
        assert manager.get("output.output_dir") == "out"

    def test_partial_sections_use_defaults(self, tmp_path):
        filepath = _write_yaml(tmp_path, {"loudness": {"target_lkfs": -20.0}})
        config = ConfigManager().load(filepath)
        assert config.loudness.silence_rms_floor == pytest.approx(2e-3)
        assert config.system.log_format == "json"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigFileNotFoundError):
            ConfigManager().load(tmp_path / "nope.yaml")

    def test_empty_file_gives_defaults(self, tmp_path):
        filepath = tmp_path / "empty.yaml"
        filepath.write_text("", encoding="utf-8")
        config = ConfigManager().load(filepath)
        assert config == AppConfig()

    def test_non_mapping_root(self, tmp_path):
        filepath = tmp_path / "list.yaml"
        filepath.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigLoadError):
            ConfigManager().load(filepath)

    def test_broken_yaml(self, tmp_path):
        filepath = tmp_path / "broken.yaml"
        filepath.write_text("loudness: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigLoadError):
            ConfigManager().load(filepath)

    def test_validation_error(self, tmp_path):
        filepath = _write_yaml(tmp_path, {"loudness": {"target_lkfs": 12.0}})
        manager = ConfigManager()
        with pytest.raises(ConfigValidationError):
            manager.load(filepath)
        with pytest.raises(RuntimeError):
            manager.get("loudness.target_lkfs")

    def test_validation_error_is_load_error(self):
        assert issubclass(ConfigValidationError, ConfigLoadError)
        assert issubclass(ConfigFileNotFoundError, ConfigLoadError)


# =============================================================================
# 환경변수 오버라이드 테스트
# =============================================================================

class TestEnvOverrides:
    def test_float_override(self, tmp_path, monkeypatch):
        filepath = _write_yaml(tmp_path, {"loudness": {"target_lkfs": -14.0}})
        monkeypatch.setenv("SNM_LOUDNESS_TARGET_LKFS", "-18.5")
        config = ConfigManager().load(filepath)
        assert config.loudness.target_lkfs == -18.5

    def test_bool_override(self, monkeypatch):
        monkeypatch.setenv("SNM_LOUDNESS_LOUDNESS_COMPRESSOR", "TRUE")
        config = ConfigManager().load_defaults()
        assert config.loudness.loudness_compressor is True

    def test_int_override(self, monkeypatch):
        monkeypatch.setenv("SNM_LOUDNESS_GATING_BLOCK_WINDOWS", "1")
        config = ConfigManager().load_defaults()
        assert config.loudness.gating_block_windows == 1

    def test_string_override(self, monkeypatch):
        monkeypatch.setenv("SNM_OUTPUT_OUTPUT_DIR", "/tmp/speech")
        config = ConfigManager().load_defaults()
        assert config.output.output_dir == "/tmp/speech"

    def test_key_without_field_ignored(self, monkeypatch):
        monkeypatch.setenv("SNM_LOUDNESS", "x")
        assert ConfigManager().load_defaults() == AppConfig()

    def test_injected_environment(self):
        environ = {
            "SNM_LOUDNESS_SILENCE_RMS_FLOOR": "2e-3",
            "SNM_SYSTEM_LOG_LEVEL": "debug",
            "HOME": "/root",
        }
        config = ConfigManager(environ=environ).load_defaults()
        assert config.loudness.silence_rms_floor == pytest.approx(2e-3)
        assert config.system.log_level == "DEBUG"

    def test_override_replaces_non_mapping_section(self, tmp_path):
        filepath = _write_yaml(tmp_path, {"loudness": None})
        environ = {"SNM_LOUDNESS_TARGET_LKFS": "-20"}
        config = ConfigManager(environ=environ).load(filepath)
        assert config.loudness.target_lkfs == -20.0

    def test_invalid_override_rejected(self, monkeypatch):
        monkeypatch.setenv("SNM_LOUDNESS_TARGET_LKFS", "loud")
        with pytest.raises(ConfigValidationError):
            ConfigManager().load_defaults()


# =============================================================================
# 조회 테스트
# =============================================================================

class TestGet:
    def test_get_before_load(self):
        with pytest.raises(RuntimeError):
            ConfigManager().get("loudness.target_lkfs")

    def test_dot_notation(self):
        manager = ConfigManager()
        manager.load_defaults()
        assert manager.get("loudness.target_lkfs") == -14.0
        assert manager.get("output.output_dir") == "output/audio"

    def test_missing_key_returns_default(self):
        manager = ConfigManager()
        manager.load_defaults()
        assert manager.get("loudness.nothing", default=42) == 42
        assert manager.get("nothing.at.all") is None
