"""Alembic entry points for the packaged calendar schema."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config

from venuecal.config.storage import get_database_config

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

SCRIPT_DIR: Final[Path] = Path(__file__).resolve().parent


def alembic_config(database_uri: str | None = None) -> Config:
    """Build an Alembic ``Config`` without an ``alembic.ini`` on disk."""

    config = Config()
    config.set_main_option("script_location", str(SCRIPT_DIR))
    if database_uri is not None:
        config.set_main_option("sqlalchemy.url", database_uri)
    return config


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    if engine is None:
        command.upgrade(alembic_config(database_uri or get_database_config().uri), "head")
        return
    config = alembic_config()
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        command.upgrade(config, "head")
