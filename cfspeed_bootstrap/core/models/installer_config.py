"""
InstallerConfig — where releases live and where the binary goes.

Defaults describe the public cloudflare-speed-cli release channel.
Everything can be overridden from a YAML file, the environment, or
CLI flags (see ``core.config.loader``).
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator


def _default_install_dir() -> Path:
    return Path.home() / ".local" / "bin"


class InstallerConfig(BaseModel):
    """Resolved installer settings for one run."""

    repo: str = "kavehtehrani/cloudflare-speed-cli"
    binary_name: str = "cloudflare-speed-cli"
    package_prefix: str = "cloudflare-speed-cli"
    archive_ext: str = "tar.xz"
    digest_suffix: str = ".sha256"

    release_base_url: str = "https://github.com"
    api_base_url: str = "https://api.github.com"

    install_dir: Path = Field(default_factory=_default_install_dir)
    timeout: float = 60.0

    # Explicit release tag. None means "ask the API for the latest".
    version: str | None = None

    @field_validator("version", mode="before")
    @classmethod
    def _blank_version_is_unset(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("install_dir", mode="before")
    @classmethod
    def _expand_install_dir(cls, v: object) -> object:
        if isinstance(v, (str, Path)):
            return Path(v).expanduser()
        return v

    @field_validator("release_base_url", "api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("repo", "binary_name", "package_prefix", "archive_ext")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("timeout")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be positive")
        return v
