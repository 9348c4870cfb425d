"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


CollisionPolicyName = Literal["offset", "respect_user_addresses", "off"]


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("SHEET_AGENT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
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


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Provider 相关配置 ----
    default_provider: str = Field(
        default="deepseek",
        description="默认使用的服务商 ID，例如 deepseek、zhipu、openai",
    )
    default_model: Optional[str] = Field(
        default=None,
        description="默认模型 ID；为空时取服务商预设列表的第一个模型",
    )
    llm_api_key: Optional[str] = Field(default=None, description="Chat Completion API 密钥")
    llm_base_url: Optional[str] = Field(
        default=None,
        description="覆盖预设服务商的 API 基础 URL（自定义服务商时使用）",
    )
    http_timeout: float = Field(default=60.0, ge=1.0, description="HTTP 超时时间（秒）")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="生成温度")

    # ---- 对话与 ReAct ----
    max_history_messages: int = Field(default=20, ge=1, le=200, description="对话历史最大条数")
    max_react_rounds: int = Field(
        default=2,
        ge=1,
        le=5,
        description="单次用户请求内最多的模型调用轮数（2 表示允许一次观察后的追加轮）",
    )
    collision_policy: CollisionPolicyName = Field(
        default="respect_user_addresses",
        description="写入防撞策略：offset 总是偏移；respect_user_addresses 用户点名的地址不偏移；off 关闭",
    )

    # ---- 表格上下文 ----
    context_preview_rows: int = Field(default=5, ge=1, le=100, description="上下文预览行数")
    context_selection_max_cells: int = Field(
        default=50,
        ge=1,
        description="选区单元格数不超过该值时才把选区内容放进上下文",
    )

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("llm_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

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
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
