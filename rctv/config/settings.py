"""Settings management using Pydantic for type validation and configuration."""

import logging
import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field, PrivateAttr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "RCTV_"
NESTED_SECTIONS = ("logging", "browser", "bridge", "session", "kiosk", "signals")


def _expand_path(value: Any) -> Any:
    """Expand ``~`` in path-like settings values."""
    if isinstance(value, str):
        return Path(value).expanduser()
    if isinstance(value, Path):
        return value.expanduser()
    return value


class LoggingSettings(BaseModel):
    """Console and file logging configuration."""

    console_enabled: bool = Field(default=True, description="Enable console logging")
    console_level: str = Field(
        default="INFO",
        description="Console log level: DEBUG, VERBOSE, INFO, WARNING, ERROR, CRITICAL",
    )
    console_colors: bool = Field(
        default=True, description="Enable colored console output (auto-detected)"
    )

    file_enabled: bool = Field(default=False, description="Enable file logging")
    file_level: str = Field(default="DEBUG", description="File log level")
    file_directory: Optional[str] = Field(
        default=None, description="Custom log directory (defaults to data_dir/logs)"
    )
    file_prefix: str = Field(default="rctv", description="Log file prefix")
    max_log_files: int = Field(default=5, ge=1, description="Maximum number of log files to keep")
    include_function_names: bool = Field(
        default=True, description="Include function names and line numbers in file logs"
    )

    third_party_level: str = Field(
        default="WARNING", description="Log level for third-party libraries"
    )


class BrowserSettings(BaseModel):
    """Remote-session browser process configuration."""

    executable_path: str = Field(
        default="/usr/bin/chromium-browser", description="Path to Chromium executable"
    )
    profile_dir: Path = Field(
        default_factory=lambda: Path.home() / ".rctv-chrome-profile",
        description="Persistent user profile directory (keeps sign-in between sessions)",
    )
    debug_port: int = Field(default=9222, ge=1, le=65535, description="Remote debugging port")
    extra_flags: list[str] = Field(
        default_factory=list, description="Additional Chromium command line flags"
    )
    process_patterns: list[str] = Field(
        default_factory=lambda: ["chromium"],
        description="Command line patterns killed before launch and on teardown",
    )
    endpoint_attempts: int = Field(
        default=10, ge=1, description="Debug endpoint polling attempts before giving up"
    )
    endpoint_interval: float = Field(
        default=1.0, ge=0, description="Seconds between debug endpoint polls"
    )
    cleanup_grace: float = Field(
        default=1.0, ge=0, description="Seconds to wait after defensive cleanup"
    )
    stop_grace: float = Field(
        default=2.0, ge=0, description="Seconds to wait after sending termination signals"
    )

    @field_validator("profile_dir", mode="before")
    @classmethod
    def expand_profile_dir(cls, v: Any) -> Any:
        return _expand_path(v)


class BridgeSettings(BaseModel):
    """Chromedriver bridge configuration."""

    executable_path: str = Field(default="chromedriver", description="Path to chromedriver")
    port: int = Field(default=9515, ge=1, le=65535, description="Bridge listening port")
    settle_time: float = Field(
        default=3.0, ge=0, description="Seconds to wait after launching the bridge"
    )
    process_patterns: list[str] = Field(
        default_factory=lambda: ["chromedriver"],
        description="Command line patterns killed before launch and on teardown",
    )


class SessionSettings(BaseModel):
    """Meeting join automation configuration."""

    meeting_url: str = Field(
        default="https://app.zoom.us/wc/join", description="Web client meeting URL to open"
    )
    account_name: str = Field(
        default="Recurse RCTV", description="Account label chosen on the provider account picker"
    )
    success_check: Literal["leave_control", "url", "either"] = Field(
        default="leave_control", description="How the join step confirms the meeting was entered"
    )
    leave_control_text: str = Field(
        default="Leave", description="Text of the in-meeting control used as a join signal"
    )
    page_load_delay: float = Field(default=3.0, ge=0, description="Seconds after navigation")
    locate_delay: float = Field(default=2.0, ge=0, description="Seconds between locate attempts")
    settle_time: float = Field(
        default=3.0, ge=0, description="Seconds to wait before checking an interaction's effect"
    )
    optional_locate_attempts: int = Field(
        default=3, ge=1, description="Locate attempts for optional steps"
    )
    join_rounds: int = Field(default=10, ge=1, description="Interaction rounds for the join step")
    join_retry_delay: float = Field(
        default=1.0, ge=0, description="Seconds between join interaction rounds"
    )
    join_relocations: int = Field(
        default=1, ge=0, description="Times the join control is searched for again after failing"
    )


class KioskSettings(BaseModel):
    """Kiosk playlist cycling configuration."""

    api_base_url: str = Field(
        default="https://rctv.recurse.com", description="Playlist service base URL"
    )
    request_timeout: float = Field(default=10.0, gt=0, description="Playlist request timeout")
    fetch_backoff: float = Field(
        default=5.0, ge=0, description="Seconds to wait after a failed playlist fetch"
    )
    empty_playlist_wait: float = Field(
        default=10.0, ge=0, description="Seconds to wait when the playlist is empty"
    )
    surface: Literal["chromium", "none"] = Field(
        default="chromium", description="Kiosk display surface implementation"
    )
    surface_executable: str = Field(
        default="/usr/bin/chromium-browser", description="Browser used for the kiosk surface"
    )
    surface_profile_dir: Path = Field(
        default_factory=lambda: Path.home() / ".rctv-kiosk-profile",
        description="Profile directory for the kiosk surface browser",
    )

    @field_validator("surface_profile_dir", mode="before")
    @classmethod
    def expand_surface_profile_dir(cls, v: Any) -> Any:
        return _expand_path(v)


class SignalSettings(BaseModel):
    """Hardware trigger stream configuration."""

    enabled: bool = Field(default=True, description="Listen for hardware triggers")
    device_path: str = Field(default="/dev/ttyACM0", description="Line-oriented trigger stream")
    trigger_pattern: str = Field(
        default="TRIGGER", description="Byte pattern that marks a trigger line"
    )
    reopen_delay: float = Field(
        default=2.0, ge=0, description="Seconds before reopening a closed or failed stream"
    )

    @field_validator("trigger_pattern")
    @classmethod
    def validate_trigger_pattern(cls, v: str) -> str:
        if not v:
            raise ValueError("trigger_pattern cannot be empty")
        return v


class RctvSettings(BaseSettings):
    """Application settings with environment variable and YAML support."""

    _explicit_args: set = PrivateAttr(default_factory=set)
    _env_vars_set: set = PrivateAttr(default_factory=set)

    app_name: str = Field(default="RCTV", description="Application name")
    config_path: Optional[Path] = Field(default=None, description="Explicit YAML config path")

    # Token used by the playlist service
    token: Optional[str] = Field(default=None, description="TV login token")
    token_file: Path = Field(
        default_factory=lambda: Path.home() / ".rctvtoken",
        description="Token file read when no token is given",
    )

    config_dir: Path = Field(default_factory=lambda: Path.home() / ".config" / "rctv")
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local" / "share" / "rctv")

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    bridge: BridgeSettings = Field(default_factory=BridgeSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    kiosk: KioskSettings = Field(default_factory=KioskSettings)
    signals: SignalSettings = Field(default_factory=SignalSettings)

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("token_file", "config_path", mode="before")
    @classmethod
    def expand_paths(cls, v: Any) -> Any:
        return _expand_path(v)

    def __init__(self, **kwargs: Any) -> None:
        # Track which environment variables are set before calling parent
        env_vars_set = {
            key[len(ENV_PREFIX) :].lower()
            for key in os.environ
            if key.upper().startswith(ENV_PREFIX)
        }

        super().__init__(**kwargs)

        self._explicit_args = set(kwargs.keys())
        self._env_vars_set = env_vars_set

        # YAML is applied last but never overrides explicit or environment values
        self._load_yaml_config()

    def _find_config_file(self) -> Optional[Path]:
        """Find the YAML configuration file, explicit path first."""
        if self.config_path is not None:
            return self.config_path if self.config_path.exists() else None

        project_config = Path.cwd() / "config" / "config.yaml"
        if project_config.exists():
            return project_config

        user_config = self.config_dir / "config.yaml"
        if user_config.exists():
            return user_config

        return None

    def _is_overridden(self, name: str) -> bool:
        return name in self._explicit_args or name in self._env_vars_set

    def _load_section(self, section: str, values: dict[str, Any]) -> None:
        """Merge one YAML section into the matching nested model."""
        if self._is_overridden(section):
            return

        current: BaseModel = getattr(self, section)
        accepted = {
            key: value
            for key, value in values.items()
            if key in type(current).model_fields
            and f"{section}__{key.lower()}" not in self._env_vars_set
        }
        ignored = set(values) - set(accepted)
        if ignored:
            logging.debug(f"Ignoring config keys in '{section}': {sorted(ignored)}")

        merged = type(current).model_validate({**current.model_dump(), **accepted})
        setattr(self, section, merged)

    def _load_yaml_config(self) -> None:
        """Load configuration from YAML file if it exists."""
        config_file = self._find_config_file()
        if not config_file:
            return

        try:
            with config_file.open() as f:
                config_data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            # Don't fail if YAML loading fails, just continue with defaults/env vars
            logging.warning(f"Could not load YAML config from {config_file}: {e}")
            return

        if not isinstance(config_data, dict):
            return

        for section in NESTED_SECTIONS:
            section_data = config_data.get(section)
            if isinstance(section_data, dict):
                self._load_section(section, section_data)

        for setting in ("token", "token_file", "app_name"):
            if setting in config_data and not self._is_overridden(setting):
                value = config_data[setting]
                setattr(self, setting, _expand_path(value) if setting == "token_file" else value)

    @property
    def log_directory(self) -> Path:
        """Directory used for file logging."""
        if self.logging.file_directory:
            return Path(self.logging.file_directory).expanduser()
        return self.data_dir / "logs"
