"""Configuration loading from YAML and environment.

The store keeps its config in ``<root>/.sync/config.yaml``. Secrets
(tokens) are taken from environment variables or from files (Docker
secrets) and are never written back to the config file.
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from issuesync.errors import ConfigError, NotInitializedError


def _read_secret(env: dict[str, str], env_key: str, file_env_key: str) -> str | None:
    """Read secret from env var or from file path in env (e.g. Docker
    secrets)."""
    value = env.get(env_key)
    if value:
        return value.strip()
    file_path = env.get(file_env_key)
    if file_path:
        return Path(file_path).read_text().strip()
    return None


class RepositoryConfig(BaseSettings):
    """Target repository."""

    model_config = SettingsConfigDict(env_prefix="REPOSITORY_", extra="ignore")

    owner: str = Field(default="", description="Repository owner (user or organization)")
    repo: str = Field(default="", description="Repository name")

    @property
    def slug(self) -> str:
        owner, repo = self.owner.strip(), self.repo.strip()
        if not owner or not repo:
            return ""
        return f"{owner}/{repo}"


class GitHubConfig(BaseSettings):
    """GitHub API settings."""

    model_config = SettingsConfigDict(env_prefix="GITHUB_", extra="ignore")

    token: str | None = Field(default=None, description="PAT or app token; use env or secret file")
    api_url: str = Field(default="https://api.github.com", description="API base URL")
    timeout: int = Field(default=30, ge=1, description="HTTP timeout in seconds")


class SyncSettings(BaseSettings):
    """Sync bookkeeping and lock behaviour."""

    model_config = SettingsConfigDict(env_prefix="SYNC_", extra="ignore")

    last_full_pull: datetime | None = Field(default=None, description="Advanced by every full pull")
    lock_timeout: float = Field(default=10.0, gt=0, description="Seconds to wait for the sync lock")


class LoggingConfig(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="LOGGING_", extra="ignore")

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )


class AppConfig(BaseSettings):
    """Root config from YAML + env."""

    model_config = SettingsConfigDict(extra="ignore")

    repository: RepositoryConfig = Field(default_factory=RepositoryConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def github_token_resolved(self, env: dict[str, str] | None = None) -> str | None:
        """Resolve GitHub token from config, env or Docker secret file."""
        t = self.github.token
        if t and not t.startswith("${"):
            return t
        return _read_secret(dict(os.environ) if env is None else env, "GITHUB_TOKEN", "GITHUB_TOKEN_FILE")

    def require_repository(self) -> str:
        slug = self.repository.slug
        if not slug:
            raise NotInitializedError("repository not configured: run `issuesync init owner/repo` first")
        return slug


def _substitute_env(value: Any, env: dict[str, str]) -> Any:
    """Replace ${VAR} and $VAR in strings with env values."""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            key = value[2:-1].strip()
            return env.get(key, value)
        if value.startswith("$") and not value.startswith("${"):
            key = value[1:].strip()
            return env.get(key, value)
        return value
    if isinstance(value, dict):
        return {k: _substitute_env(v, env) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute_env(v, env) for v in value]
    return value


def load_config(config_path: Path, env: dict[str, str] | None = None) -> AppConfig:
    """Load config from the store's YAML file.

    Raises NotInitializedError when the file does not exist and ConfigError
    when it is not valid YAML or holds invalid values.
    """
    if not config_path.is_file():
        raise NotInitializedError(f"not initialized: {config_path} missing, run `issuesync init` first")
    env = dict(os.environ) if env is None else env
    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"{config_path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path}: expected a mapping at the top level")
    raw = _substitute_env(raw, env)

    try:
        return AppConfig(
            repository=RepositoryConfig(**(raw.get("repository") or {})),
            github=GitHubConfig(**(raw.get("github") or {})),
            sync=SyncSettings(**(raw.get("sync") or {})),
            logging=LoggingConfig(**(raw.get("logging") or {})),
        )
    except (TypeError, ValidationError) as e:
        raise ConfigError(f"{config_path}: {e}") from e


def save_config(config_path: Path, config: AppConfig) -> None:
    """Write config as YAML. The token is never persisted."""
    payload = config.model_dump(mode="json", exclude={"github": {"token"}}, exclude_none=True)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    raw = yaml.dump(payload, default_flow_style=False, allow_unicode=True, sort_keys=False)
    tmp = config_path.with_suffix(config_path.suffix + ".tmp")
    tmp.write_text(raw, encoding="utf-8")
    tmp.replace(config_path)
