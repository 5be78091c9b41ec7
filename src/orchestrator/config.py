"""Configuration management."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings from environment."""

    # Git
    git_binary: str = "git"
    remote: str = "origin"
    tip_branch: str = "assets-tip"
    command_timeout_seconds: float | None = None

    # Publishing
    commit_body_limit: int = 50  # paths listed in a sync/publish commit body
    worktree_prefix: str = ".wt-assets-tip"
    worktree_create_attempts: int = 3

    # Reporting
    error_summary_limit: int = 5

    # Logging
    log_level: str = "INFO"

    # Service
    host: str = "127.0.0.1"
    port: int = 8000

    @property
    def tip_ref(self) -> str:
        """Remote-tracking ref of the tip branch."""
        return f"{self.remote}/{self.tip_branch}"

    class Config:
        env_prefix = "TIPLOCK_"
        env_file = ".env"
        env_file_encoding = "utf-8"
