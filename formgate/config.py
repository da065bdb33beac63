"""Runtime configuration for FormGate.

Settings are read from the environment (prefix ``FORMGATE_``) or a local
``.env`` file. Guards and the runtime take an explicit ``Settings`` so tests
can pin values without touching the environment.
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from formgate.types import NameScope


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FORMGATE_",
        env_file=".env",
        extra="ignore",
    )

    # Where form names must be unique (templates are always active-only)
    form_name_scope: NameScope = NameScope.ACTIVE

    # Columns in the layout grid; gridSize must fall in [1, max_grid_size]
    max_grid_size: int = 12

    # Name length bounds for forms and templates
    min_name_length: int = 3
    max_name_length: int = 100

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Attach a basic handler to the ``formgate`` logger.

    The library never configures logging on import; applications embedding
    the engine call this once at startup if they want its output.
    """
    settings = settings or get_settings()
    logger = logging.getLogger("formgate")
    logger.setLevel(settings.log_level.upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(handler)


__all__ = [
    "Settings",
    "get_settings",
    "configure_logging",
]
