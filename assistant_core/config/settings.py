"""配置管理模块。

支持从初始化参数、环境变量、.env 以及 config.yaml 加载配置。

客户端本身不读取全局 settings，而是接收一个不可变的 ClientConfig，
由调用方通过 ClientConfig.from_settings(settings) 显式构造后传入。
"""

import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4"


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("ASSISTANT_CONFIG_FILE")
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

    # ---- OpenAI 相关配置 ----
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API 密钥")
    openai_base_url: str = Field(default=DEFAULT_BASE_URL, description="OpenAI API 基础URL")
    default_model: str = Field(default=DEFAULT_MODEL, description="Chat Completions 使用的模型名")
    assistant_id: Optional[str] = Field(default=None, description="Assistant 客户端使用的助手 ID")
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0, description="生成温度，为空时使用模型默认值")
    system_prompt: Optional[str] = Field(default=None, description="覆盖内置的系统提示词")

    # ---- 网络与轮询 ----
    http_timeout: float = Field(default=60.0, ge=1.0, description="单次请求超时时间（秒）")
    resource_timeout: float = Field(default=120.0, ge=1.0, description="单次调用整体超时时间（秒）")
    poll_interval: float = Field(default=1.0, gt=0.0, description="run 状态轮询间隔（秒）")

    # ---- 存储与日志 ----
    thread_store_key: str = Field(default="openai_thread_id", description="线程 ID 的持久化键名")
    storage_root: str = Field(default=".storage", description="存储根目录")
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

    @field_validator("openai_api_key")
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


@dataclass(frozen=True)
class ClientConfig:
    """客户端共享的只读配置。

    Attributes:
        api_key: Bearer Token。
        model: Chat Completions 模型名。
        assistant_id: Assistant 客户端使用的助手 ID（ChatClient 不需要）。
        base_url: API 基础 URL（不带结尾斜杠）。
        temperature: 生成温度，为空时使用模型默认值（0.7）。
        poll_interval: run 状态轮询间隔（秒）。
        request_timeout: 单次 HTTP 请求超时（秒）。
        resource_timeout: 单次调用整体超时（秒），超过即视为网络错误。
    """

    api_key: str
    model: str = DEFAULT_MODEL
    assistant_id: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    temperature: Optional[float] = None
    poll_interval: float = 1.0
    request_timeout: float = 60.0
    resource_timeout: float = 120.0

    @classmethod
    def from_settings(cls, cfg: "Settings", **overrides: Any) -> "ClientConfig":
        values: Dict[str, Any] = {
            "api_key": cfg.openai_api_key or "",
            "model": cfg.default_model,
            "assistant_id": cfg.assistant_id,
            "base_url": cfg.openai_base_url.rstrip("/"),
            "temperature": cfg.temperature,
            "poll_interval": cfg.poll_interval,
            "request_timeout": cfg.http_timeout,
            "resource_timeout": cfg.resource_timeout,
        }
        values.update(overrides)
        return cls(**values)


settings = Settings()
