"""Process-wide dependencies for CLI commands."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

from entityflow.config import AppSettings
from entityflow.container import ServiceContainer, build_container


def load_env_file(path: Path | None = None) -> bool:
    """Load ``.env`` from the working directory; existing variables win."""

    env_path = path or Path.cwd() / ".env"
    if not env_path.exists():
        return False
    return load_dotenv(env_path, override=False)


@lru_cache(maxsize=1)
def get_container() -> ServiceContainer:
    return build_container(AppSettings.from_env())


def reset_container() -> None:
    """Drop the cached container so the next command rebuilds it from the environment."""

    get_container.cache_clear()
