"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from pydantic import AliasChoices, Field, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


DEFAULT_CREATOR_ATTRIBUTION = (
    "I was built by DirimSi group From Cameroon which is overseeded by SchrDbb. "
    "My reference ai conceptor is Gemini ai."
)


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("DIRIMSI_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class YamlConfigSource(PydanticBaseSettingsSource):
    """把 config.yaml 作为优先级最低的一层配置来源。"""

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        data = _load_config_from_yaml()
        return data.get(field_name), field_name, False

    def __call__(self) -> Dict[str, Any]:
        data = _load_config_from_yaml()
        return {name: data[name] for name in self.settings_cls.model_fields if name in data}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Provider 相关配置 ----
    default_provider: str = Field(default="gemini", description="默认使用的 Provider 名称")
    default_model: str = Field(
        default="culture-chat",
        description="逻辑模型名，由 registry 映射为具体厂商模型",
    )

    # Gemini：密钥可以来自 GEMINI_API_KEY 或 GOOGLE_API_KEY
    gemini_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("gemini_api_key", "GEMINI_API_KEY", "GOOGLE_API_KEY"),
        description="Gemini API 密钥",
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini API 基础URL",
    )
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")

    # ---- 重试 / 防抖 ----
    retry_max_attempts: int = Field(default=3, ge=1, le=10, description="限流时的最大尝试次数")
    retry_initial_delay: float = Field(default=1.0, ge=0.0, description="首次重试前的等待（秒）")
    retry_backoff_multiplier: float = Field(default=2.0, gt=1.0, description="退避倍数（必须大于 1）")
    debounce_seconds: float = Field(default=0.3, ge=0.0, description="入口防抖窗口（秒）")

    # ---- 助手人设 ----
    assistant_name: str = Field(default="DirimSi AI", description="助手名称")
    creator_attribution: str = Field(
        default=DEFAULT_CREATOR_ATTRIBUTION,
        description="被问到创作者时的固定回答",
    )
    image_analysis_prompt: str = Field(
        default=(
            "Look at this image and explain any African cultural elements it shows: "
            "clothing, patterns, objects, food, places or traditions. "
            "If nothing cultural is visible, describe what you see and relate it to African heritage where possible."
        ),
        description="用户未附文字时发送的图片分析指令",
    )
    greeting_cooldown_hours: float = Field(
        default=24.0,
        ge=0.0,
        description="两次完整欢迎语之间的最小间隔（小时）",
    )

    storage_root: str = Field(default=".storage", description="存储根目录")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("gemini_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v or None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSource(settings_cls),
            file_secret_settings,
        )


settings = Settings()
