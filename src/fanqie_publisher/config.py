from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")

DEFAULT_BASE_URL = "https://fanqienovel.com"


def _expand_env_vars(value: object) -> object:
    if isinstance(value, str):
        def repl(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, "")

        return _ENV_VAR_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name, "") or "").strip().lower()
    if not raw:
        return bool(default)
    return raw in {"1", "true", "t", "yes", "y", "on"}


def _env_number(name: str, default: float) -> float:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        # Keep it permissive: a junk value falls back to the default instead of crashing.
        return default


def _deep_merge(base: object, override: object) -> object:
    if isinstance(base, dict) and isinstance(override, dict):
        out = dict(base)
        for k, v in override.items():
            if k in out:
                out[k] = _deep_merge(out[k], v)
            else:
                out[k] = v
        return out
    return override


def _default_config_from_env() -> dict:
    """
    Env-only defaults so most users only need `.env`; YAML remains an optional override.
    """
    return {
        "platform": {
            "base_url": os.getenv("FANQIE_BASE_URL", DEFAULT_BASE_URL),
        },
        "credentials": {
            "username": os.getenv("FANQIE_USERNAME", ""),
            "password": os.getenv("FANQIE_PASSWORD", ""),
        },
        "session": {
            "cookie_file": os.getenv("FANQIE_SESSION_FILE", "data/fanqie-cookies.json"),
        },
        "verification": {
            "max_rounds": int(_env_number("FANQIE_MAX_ROUNDS", 60)),
            "poll_interval_seconds": _env_number("FANQIE_POLL_INTERVAL", 2.0),
        },
        "browser": {
            "headless": _env_bool("FANQIE_HEADLESS", default=False),
            "channel": os.getenv("FANQIE_BROWSER_CHANNEL", "chrome"),
        },
        "debug": {
            "error_screenshot": os.getenv("FANQIE_ERROR_SCREENSHOT", "fanqie-error.png"),
            "debug_dir": os.getenv("FANQIE_DEBUG_DIR", "data/debug"),
        },
        "logging": {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "file_path": os.getenv("LOG_FILE", "data/fanqie.log"),
            "quiet_level": os.getenv("NOISY_LOG_LEVEL", "WARNING"),
        },
    }


class PlatformConfig(BaseModel):
    """
    Writer-portal URLs. Only `base_url` normally needs changing; the rest derive from it.
    """

    base_url: str = DEFAULT_BASE_URL
    writer_path: str = "/main/writer/"
    login_path: str = "/main/writer/login"

    @model_validator(mode="after")
    def _normalize(self) -> "PlatformConfig":
        base_url = (self.base_url or "").strip().rstrip("/") or DEFAULT_BASE_URL
        parsed = urlparse(base_url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"platform.base_url must be a full URL like {DEFAULT_BASE_URL!r}")
        self.base_url = base_url
        return self

    @property
    def writer_url(self) -> str:
        return f"{self.base_url}{self.writer_path}"

    @property
    def login_url(self) -> str:
        return f"{self.base_url}{self.login_path}"

    def new_chapter_url(self, project_id: str) -> str:
        return f"{self.base_url}/main/writer/{project_id}/publish/?enter_from=newchapter"


class CredentialsConfig(BaseModel):
    # Empty values are allowed: the run still restores cookies and can wait on a manual login.
    username: str = ""
    password: str = Field(default="", repr=False)


class SessionConfig(BaseModel):
    cookie_file: str = "data/fanqie-cookies.json"


class VerificationConfig(BaseModel):
    """
    Poll budget for the login/challenge wait. Defaults give 60 rounds x 2s = two minutes.
    """

    max_rounds: int = 60
    poll_interval_seconds: float = 2.0
    authenticated_routes: list[str] = Field(default_factory=lambda: ["writer/work", "writer/index"])
    challenge_selectors: list[str] = Field(
        default_factory=lambda: [".geetest_panel", ".tcaptcha", '[id*="tcaptcha"]', ".slider-captcha"]
    )
    challenge_texts: list[str] = Field(default_factory=lambda: ["滑动验证", "请先完成验证"])
    challenge_console_hints: list[str] = Field(default_factory=lambda: ["sliderView show"])
    resolved_console_hints: list[str] = Field(
        default_factory=lambda: ["sliderView show resolve", "验证成功"]
    )

    @field_validator("max_rounds")
    @classmethod
    def _positive_rounds(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("verification.max_rounds must be positive")
        return v

    @field_validator("poll_interval_seconds")
    @classmethod
    def _non_negative_interval(cls, v: float) -> float:
        if v < 0:
            raise ValueError("verification.poll_interval_seconds must not be negative")
        return v

    @property
    def budget_seconds(self) -> float:
        return self.max_rounds * self.poll_interval_seconds


class BrowserConfig(BaseModel):
    headless: bool = False
    # Preferred installed browser; falls back to Playwright's bundled Chromium (headless) if unavailable.
    channel: str = "chrome"
    slow_mo_ms: int = 0
    viewport_width: int = 1280
    viewport_height: int = 720
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    launch_args: list[str] = Field(default_factory=lambda: ["--disable-blink-features=AutomationControlled"])
    navigation_timeout_ms: int = 30_000
    # Keep the window open a while after the run so a supervising human can see the end state.
    linger_seconds: float = 0.0


class DebugConfig(BaseModel):
    error_screenshot: str = "fanqie-error.png"
    debug_dir: str = "data/debug"
    step_screenshots: bool = False


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file_path: str = "data/fanqie.log"
    # Third-party loggers whose debug output buries the login state lines.
    quiet_loggers: list[str] = ["playwright", "asyncio"]
    quiet_level: str = "WARNING"


class AppConfig(BaseModel):
    platform: PlatformConfig = PlatformConfig()
    credentials: CredentialsConfig = CredentialsConfig()
    session: SessionConfig = SessionConfig()
    verification: VerificationConfig = VerificationConfig()
    browser: BrowserConfig = BrowserConfig()
    debug: DebugConfig = DebugConfig()
    logging: LoggingConfig = LoggingConfig()


def load_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    raw: dict = {}
    if path:
        p = Path(path)
        if p.exists():
            raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
            raw = _expand_env_vars(raw)  # supports ${ENV_VAR} in YAML

    merged = _deep_merge(_default_config_from_env(), raw)
    return AppConfig.model_validate(merged)
