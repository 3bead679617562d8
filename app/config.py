# app/config.py
from __future__ import annotations

import ipaddress
import logging
import os
import re
from pathlib import Path
from typing import Literal, Optional
from urllib.parse import urlsplit

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".yml", ".yaml")

# =========================
# YAML 設定檔：app / wechat
# =========================
class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    port: int = Field(..., ge=1, le=65535)
    mode: Literal["debug", "release", "test"] = "release"


class WechatConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    token: str = Field(..., min_length=1)
    app_id: str = Field(default="", alias="appId")
    app_secret: str = Field(default="", alias="appSecret")


class ConfigSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    app: AppConfig
    wechat: WechatConfig


def load_config(path: str) -> ConfigSettings:
    """
    讀取 YAML 設定檔，任何錯誤都包成 ConfigError（啟動即失敗，不帶半成品設定啟動）
    """
    if not path:
        raise ConfigError("config file not specified")

    file = Path(path).expanduser()
    if file.suffix.lower() not in SUPPORTED_EXTENSIONS:
        raise ConfigError(f"config file only support .yml or .yaml format, got {path!r}")

    try:
        raw = file.resolve().read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"malformed yaml in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping at top level")

    try:
        config = ConfigSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid config in {path}: {e}") from e

    logger.debug("config loaded from %s: port=%s mode=%s", path, config.app.port, config.app.mode)
    return config


# =========================
# 位址校驗（OPENAI_BASE_DOMAIN / OPENAI_PROXY）
# =========================
_HOSTNAME_RE = re.compile(r"^(?=.{1,253}$)([a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)(\.[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$")


def _valid_host(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        pass
    # 純數字點分但不是合法 IP，視為錯誤
    if re.fullmatch(r"[0-9.]+", host):
        return False
    return bool(_HOSTNAME_RE.match(host))


def validate_address(addr: str) -> bool:
    """host / host:port / http(s)://host[:port][/]"""
    if not addr or addr != addr.strip():
        return False

    candidate = addr if "://" in addr else f"//{addr}"
    try:
        parts = urlsplit(candidate)
        port = parts.port
    except ValueError:
        return False

    if "://" in addr and parts.scheme not in ("http", "https"):
        return False
    if parts.path not in ("", "/") or parts.query or parts.fragment:
        return False
    if parts.username or parts.password:
        return False
    if port is not None and not (1 <= port <= 65535):
        return False
    # urlsplit 對 ":"、":80" 會給出 port 但沒有 host
    host = parts.hostname or ""
    return bool(host) and _valid_host(host)


# =========================
# 環境變數：聊天後端
# =========================
class BackendSettings(BaseSettings):
    # ----- OpenAI -----
    OPENAI_API_KEY: str = Field(default="", description="OpenAI API key, empty disables the LLM backend")
    OPENAI_BASE_DOMAIN: str = Field(default="", description="Optional: api domain override, e.g. api.openai.com")
    OPENAI_PROXY: str = Field(default="", description="Optional: http proxy for OpenAI calls")
    OPENAI_MODEL: str = Field(default="gpt-4o-mini", description="Chat model")

    # ----- Tuling -----
    TULING_API_KEY: str = Field(default="", description="Tuling robot api key, empty disables it")

    # ----- Misc -----
    CHAT_TIMEOUT: float = Field(default=4.5, gt=0, description="Seconds per backend call; WeChat waits 5s at most")
    LOG_LEVEL: str = Field(default="", description="Overrides the level derived from app.mode")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore", frozen=True)

    @field_validator("OPENAI_BASE_DOMAIN", "OPENAI_PROXY")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()

    @model_validator(mode="after")
    def _check_openai_addresses(self) -> "BackendSettings":
        # 只有啟用 OpenAI 時才會用到這兩個位址
        if not self.openai_enabled:
            return self
        for name in ("OPENAI_BASE_DOMAIN", "OPENAI_PROXY"):
            value = getattr(self, name)
            if value and not validate_address(value):
                raise ValueError(f"{name} is not valid: {value}")
        return self

    @property
    def openai_enabled(self) -> bool:
        return bool(self.OPENAI_API_KEY.strip())

    @property
    def tuling_enabled(self) -> bool:
        return bool(self.TULING_API_KEY.strip())


def load_backend_settings() -> BackendSettings:
    try:
        return BackendSettings()
    except ValidationError as e:
        raise ConfigError(f"invalid chat backend environment: {e}") from e


# =========================
# 日誌
# =========================
_MODE_LEVELS = {"debug": logging.DEBUG, "release": logging.INFO, "test": logging.WARNING}


def setup_logging(mode: str, level: Optional[str] = None) -> int:
    name = (level or os.getenv("LOG_LEVEL") or "").upper()
    resolved = getattr(logging, name, None) if name else None
    if not isinstance(resolved, int):
        resolved = _MODE_LEVELS.get(mode, logging.INFO)
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    logging.getLogger().setLevel(resolved)
    return resolved
