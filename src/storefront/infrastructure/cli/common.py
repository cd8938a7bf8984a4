"""Helpers shared by the CLI command modules."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import click

from storefront.domain.exceptions import DomainException, StorageError
from storefront.domain.repository.unit_of_work import UnitOfWorkFactory
from storefront.infrastructure.bootstrap import Settings, unit_of_work_factory


class StorageFailure(click.ClickException):
    """Storage is down: not something the user can fix by changing input."""

    exit_code = 2


@contextmanager
def domain_errors() -> Iterator[None]:
    """Turn domain and storage errors into click's user-facing exceptions."""
    try:
        yield
    except DomainException as exc:
        raise click.ClickException(str(exc))
    except StorageError as exc:
        raise StorageFailure(str(exc))


def uow_factory(settings: Settings) -> UnitOfWorkFactory:
    with domain_errors():
        return unit_of_work_factory(settings)


def parse_pairs(raw: tuple[str, ...]) -> dict[str, str]:
    """Parse ('city=Oslo', 'zip=0150') into {'city': 'Oslo', 'zip': '0150'}."""
    result: dict[str, str] = {}
    for pair in raw:
        if "=" not in pair:
            raise click.BadParameter(
                f"Invalid field '{pair}'. Expected 'name=value'."
            )
        name, value = pair.split("=", 1)
        result[name.strip()] = value.strip()
    return result
