"""Composition root — wires concrete implementations to domain interfaces.

This is the only place in the codebase that knows about *all* layers.
Every other module depends only on abstractions.  Settings come from
``STOREFRONT_*`` environment variables.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Mapping

from storefront.application.checkout import DEFAULT_MAX_ATTEMPTS
from storefront.domain.exceptions import ValidationError
from storefront.domain.repository.unit_of_work import UnitOfWorkFactory
from storefront.infrastructure.persistence.json_unit_of_work import JsonUnitOfWork
from storefront.infrastructure.persistence.sql_schema import (
    create_storage_engine,
    init_schema,
)
from storefront.infrastructure.persistence.sql_unit_of_work import SqlUnitOfWork

logger = logging.getLogger(__name__)

# Resolve data directory relative to the project root.
# When installed in editable mode the project root is the repo root.
_DEFAULT_DATA_DIR = Path(__file__).resolve().parents[3] / "data"

BACKENDS = ("json", "sql")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class Settings:
    backend: str = "json"
    data_dir: Path = _DEFAULT_DATA_DIR
    database_url: str | None = None
    db_timeout: float = 5.0
    checkout_attempts: int = DEFAULT_MAX_ATTEMPTS

    def __post_init__(self) -> None:
        if self.backend not in BACKENDS:
            raise ValidationError(
                f"Unknown storage backend {self.backend!r}; expected one of {', '.join(BACKENDS)}"
            )
        if self.db_timeout <= 0:
            raise ValidationError("Storage timeout must be positive")
        if self.checkout_attempts < 1:
            raise ValidationError("Checkout attempts must be at least 1")

    @property
    def resolved_database_url(self) -> str:
        return self.database_url or f"sqlite:///{self.data_dir / 'storefront.db'}"

    @staticmethod
    def from_env(environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        return Settings(
            backend=env.get("STOREFRONT_BACKEND", "json").strip().lower(),
            data_dir=Path(env.get("STOREFRONT_DATA_DIR", str(_DEFAULT_DATA_DIR))),
            database_url=env.get("STOREFRONT_DATABASE_URL") or None,
            db_timeout=_number(env, "STOREFRONT_DB_TIMEOUT", 5.0, float),
            checkout_attempts=_number(
                env, "STOREFRONT_CHECKOUT_ATTEMPTS", DEFAULT_MAX_ATTEMPTS, int
            ),
        )


def _number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ValidationError(f"{name} must be a number, got {raw!r}") from exc


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
    )


def unit_of_work_factory(settings: Settings) -> UnitOfWorkFactory:
    """Return a zero-argument callable producing fresh units of work."""
    if settings.backend == "sql":
        url = settings.resolved_database_url
        if url.startswith("sqlite:///") and ":memory:" not in url:
            Path(url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
        engine = create_storage_engine(url, timeout=settings.db_timeout)
        init_schema(engine)
        logger.debug("Using SQL storage at %s", engine.url.render_as_string(hide_password=True))
        return partial(SqlUnitOfWork, engine)

    logger.debug("Using JSON storage in %s", settings.data_dir)
    return partial(JsonUnitOfWork, settings.data_dir, settings.db_timeout)
