"""
Centralized Configuration Management for gitrecords

Provides pydantic-based configuration with:
- Environment variable loading (.env support)
- Type validation
- Default values
- Optional YAML overrides

Usage:
    from gitrecords.core.config import get_config

    config = get_config()
    print(config.db_root)
    print(config.branch)
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "GITRECORDS_CONFIG"


def gitrecords_home() -> Path:
    """Default home directory (~/.gitrecords)"""
    return Path.home() / ".gitrecords"


class GitRecordsConfig(BaseSettings):
    """
    Central configuration for gitrecords

    All settings can be overridden via environment variables with GITRECORDS_ prefix.
    For example: GITRECORDS_DB_ROOT, GITRECORDS_BRANCH, etc.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="GITRECORDS_",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================
    # Repository Configuration
    # ============================================

    db_root: Path = Field(
        default_factory=lambda: gitrecords_home() / "db",
        description="Directory holding the bare git repository",
    )

    branch: str = Field(
        default="master",
        description="Branch whose history holds the records",
    )

    author_name: str = Field(
        default="gitrecords",
        description="Author/committer name written into every commit",
    )

    author_email: str = Field(
        default="gitrecords@localhost",
        description="Author/committer email written into every commit",
    )

    # ============================================
    # Record Configuration
    # ============================================

    empty_record_policy: Literal["marker", "reject"] = Field(
        default="marker",
        description="Records without attributes or blobs: write a marker file or reject the save",
    )

    # ============================================
    # Transaction Configuration
    # ============================================

    max_commit_retries: int = Field(
        default=3,
        ge=0,
        description="Automatic retries after a concurrent modification",
    )

    retry_backoff_seconds: float = Field(
        default=0.01,
        ge=0,
        description="Base delay for exponential backoff between retries",
    )

    lock_timeout: Optional[float] = Field(
        default=None,
        description="Seconds to wait for the write lock (None waits indefinitely)",
    )

    # ============================================
    # Application Configuration
    # ============================================

    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    # ============================================
    # Validators
    # ============================================

    @field_validator("branch")
    @classmethod
    def validate_branch(cls, v: str) -> str:
        """Reject branch names git would refuse"""
        if not v or v.startswith("-") or " " in v or ".." in v:
            raise ValueError(f"invalid branch name: {v!r}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(
                f"log_level must be one of: {', '.join(valid_levels)}"
            )
        return v.upper()

    @field_validator("lock_timeout")
    @classmethod
    def validate_lock_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("lock_timeout must be positive")
        return v

    @property
    def ref_path(self) -> str:
        """Full ref name of the record branch"""
        return f"refs/heads/{self.branch}"


# Global config instance
_config: Optional[GitRecordsConfig] = None


def get_config() -> GitRecordsConfig:
    """Get the global configuration, loading it on first use"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: GitRecordsConfig) -> None:
    """Replace the global configuration"""
    global _config
    _config = config


def reset_config() -> None:
    """Forget the global configuration (mainly for tests)"""
    global _config
    _config = None


def _load_yaml(path: Path) -> Dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    # 处理空文件
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def load_config(config_path: Optional[Path] = None, **overrides: Any) -> GitRecordsConfig:
    """
    Load configuration

    Priority (highest first):
    1. Keyword overrides
    2. YAML file (argument, else GITRECORDS_CONFIG)
    3. GITRECORDS_* environment variables / .env
    4. Defaults

    Args:
        config_path: YAML file with config keys (optional)

    Returns:
        GitRecordsConfig
    """
    if config_path is None:
        env_config_path = os.getenv(CONFIG_ENV_VAR)
        if env_config_path:
            config_path = Path(env_config_path)

    values: Dict[str, Any] = {}
    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        values.update(_load_yaml(config_path))
        logger.debug(f"Loaded config overrides from {config_path}")

    values.update(overrides)
    return GitRecordsConfig(**values)
