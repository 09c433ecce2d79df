"""配置测试：默认值、环境变量覆盖、用户设置持久化。"""

import json
import stat

import pytest

from py_tinify_mcp.config import (
    UserSettings,
    default_settings_path,
    get_config,
    reset_config,
)
from py_tinify_mcp.exceptions import ValidationError
from py_tinify_mcp.models.output_policy import OutputMode, OutputPolicy


class TestAppConfig:
    """全局默认配置"""

    def test_defaults(self):
        config = get_config()
        assert config.service.API_URL == "https://api.tinify.com/shrink"
        assert config.service.MAX_RETRIES == 2
        assert config.service.BASE_DELAY == 1.0
        assert config.pipeline.QUEUE_SIZE == 1000
        assert config.pipeline.DEFAULT_WORKERS == 2

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("TINY_MAX_RETRIES", "3")
        monkeypatch.setenv("TINY_REQUEST_TIMEOUT", "5")
        monkeypatch.setenv("TINY_WORKERS", "9")
        monkeypatch.setenv("TINY_LOG_LEVEL", "debug")
        monkeypatch.setenv("TINY_ENABLE_FILE_LOGGING", "yes")
        reset_config()

        config = get_config()
        assert config.service.MAX_RETRIES == 3
        assert config.service.REQUEST_TIMEOUT == 5.0
        assert config.pipeline.DEFAULT_WORKERS == 4
        assert config.logging.LOG_LEVEL == "DEBUG"
        assert config.logging.ENABLE_FILE_LOGGING is True

    @pytest.mark.parametrize("count, expected", [(-1, 1), (0, 1), (1, 1), (4, 4), (5, 4)])
    def test_clamp_workers(self, count, expected):
        assert get_config().pipeline.clamp_workers(count) == expected


class TestUserSettings:
    """用户设置"""

    def test_missing_file_gives_defaults(self):
        settings = UserSettings.load()
        assert settings.api_key == ""
        assert settings.output_mode == OutputMode.REPLACE
        assert settings.suffix == ".tiny"
        assert settings.concurrency == 2
        assert not settings.is_configured()
        assert not default_settings_path().exists()

    def test_env_key_wins(self, monkeypatch, tmp_path):
        path = tmp_path / "config.json"
        UserSettings(api_key="from-file").save(path)
        monkeypatch.setenv("TINYPNG_API_KEY", "from-env")

        assert UserSettings.load(path).api_key == "from-env"

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "nested" / "config.json"
        settings = UserSettings(
            api_key="abc",
            output_mode=OutputMode.DIRECTORY,
            output_dir=tmp_path / "out",
            suffix="-min",
            concurrency=3,
        )

        settings.save(path)
        loaded = UserSettings.load(path)

        assert loaded == settings
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert stat.S_IMODE(path.parent.stat().st_mode) == 0o700

    def test_default_location(self, tmp_path):
        path = UserSettings(api_key="k").save()
        assert path == tmp_path / "xdg-config" / "tinytui" / "config.json"
        assert UserSettings.load().api_key == "k"

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(ValidationError):
            UserSettings.load(path)

    def test_concurrency_out_of_range(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"concurrency": 9}), encoding="utf-8")
        with pytest.raises(ValidationError):
            UserSettings.load(path)

    def test_to_output_policy(self, tmp_path):
        replace = UserSettings(output_dir=tmp_path, suffix="").to_output_policy()
        assert replace == OutputPolicy.in_place()
        assert replace.overwrites_original

        directory = UserSettings(
            output_mode=OutputMode.DIRECTORY, output_dir=tmp_path
        ).to_output_policy()
        assert directory.output_dir == tmp_path
        assert directory.suffix == ".tiny"

    def test_directory_mode_requires_output_dir(self, tmp_path):
        """目录模式缺少输出目录时在读取阶段报错"""
        path = tmp_path / "config.json"
        path.write_text(
            json.dumps({"api_key": "k", "output_mode": "directory"}), encoding="utf-8"
        )
        with pytest.raises(ValidationError):
            UserSettings.load(path)

    def test_metadata_key_is_shared_with_existing_config(self, tmp_path):
        """元数据开关在配置文件中的键名为 metadata"""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"metadata": True}), encoding="utf-8")
        assert UserSettings.load(path).preserve_metadata is True

        UserSettings(preserve_metadata=True).save(path)
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["metadata"] is True
        assert "preserve_metadata" not in data

    def test_output_policy_overrides(self, tmp_path):
        settings = UserSettings(
            output_mode=OutputMode.DIRECTORY, output_dir=tmp_path / "out", suffix=""
        )

        # 只覆盖后缀时保留设置中的输出目录
        policy = settings.to_output_policy(suffix=".min")
        assert policy.mode == OutputMode.DIRECTORY
        assert policy.output_dir == tmp_path / "out"
        assert policy.suffix == ".min"

        other = settings.to_output_policy(output_dir=tmp_path / "other")
        assert other.output_dir == tmp_path / "other"
        assert other.suffix == ""

        replace = UserSettings(suffix="").to_output_policy(output_dir=tmp_path)
        assert replace.mode == OutputMode.DIRECTORY
        assert not replace.overwrites_original


class TestOutputPolicy:
    """输出策略校验"""

    def test_directory_requires_output_dir(self):
        with pytest.raises(ValueError):
            OutputPolicy(mode=OutputMode.DIRECTORY)

    def test_replace_rejects_output_dir(self, tmp_path):
        with pytest.raises(ValueError):
            OutputPolicy(mode=OutputMode.REPLACE, output_dir=tmp_path)
