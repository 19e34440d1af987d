"""
Translation of storage-constraint violations into validation errors.

The mapping is an explicit table from constraint *name* to the
``(field, message)`` pair reported to the client.  A violation of a
constraint that is not in the table is a bug or an unexpected race, and is
surfaced as an opaque ``Internal`` error rather than guessed at from the
driver's message text.

Reading the constraint name is driver specific:

- asyncpg reports it as ``constraint_name`` on the exception SQLAlchemy
  wraps (psycopg exposes it as ``diag.constraint_name``).
- SQLite only names CHECK constraints.  For UNIQUE and PRIMARY KEY failures
  it lists the offending ``table.column`` pairs, which are resolved back to
  the declared constraint through the SQLAlchemy ``MetaData``.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from contextlib import contextmanager
from types import MappingProxyType

from sqlalchemy import MetaData, PrimaryKeyConstraint, UniqueConstraint
from sqlalchemy.exc import IntegrityError

from conduit.database import Base
from conduit.errors import ApiError, Internal, ValidationFailed

logger = logging.getLogger(__name__)

CONSTRAINT_ERRORS: Mapping[str, tuple[str, str]] = MappingProxyType({
    "users_username_key": ("username", "username taken"),
    "users_email_key": ("email", "email taken"),
    "articles_slug_key": ("slug", "duplicate article slug"),
})

_SQLITE_UNIQUE_RE = re.compile(r"UNIQUE constraint failed: ([\w.]+(?:, [\w.]+)*)")
_SQLITE_CHECK_RE = re.compile(r"CHECK constraint failed: (\w+)")


def _driver_constraint_name(exc: IntegrityError) -> str | None:
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        name = getattr(candidate, "constraint_name", None)
        if name:
            return name
        name = getattr(getattr(candidate, "diag", None), "constraint_name", None)
        if name:
            return name
    return None


def _sqlite_constraint_name(message: str, metadata: MetaData) -> str | None:
    check = _SQLITE_CHECK_RE.search(message)
    if check:
        return check.group(1)

    unique = _SQLITE_UNIQUE_RE.search(message)
    if not unique:
        return None

    qualified = [part.strip().rsplit(".", 1) for part in unique.group(1).split(",")]
    table_names = {table for table, _ in qualified}
    if len(table_names) != 1:
        return None
    table = metadata.tables.get(table_names.pop())
    if table is None:
        return None

    columns = {column for _, column in qualified}
    for constraint in table.constraints:
        if not isinstance(constraint, (UniqueConstraint, PrimaryKeyConstraint)):
            continue
        if {c.name for c in constraint.columns} == columns:
            return constraint.name
    return None


def constraint_name(exc: IntegrityError, metadata: MetaData | None = None) -> str | None:
    """Return the name of the constraint *exc* reports, or None if unknown."""
    name = _driver_constraint_name(exc)
    if name:
        return name
    return _sqlite_constraint_name(str(exc.orig), metadata if metadata is not None else Base.metadata)


class ConstraintErrorMapper:
    """Map named constraint violations onto ``ValidationFailed`` errors."""

    def __init__(
        self,
        table: Mapping[str, tuple[str, str]] = CONSTRAINT_ERRORS,
        metadata: MetaData | None = None,
    ) -> None:
        self._table = table
        self._metadata = metadata

    def translate(self, exc: IntegrityError) -> ApiError:
        name = constraint_name(exc, self._metadata)
        entry = self._table.get(name) if name else None
        if entry is None:
            logger.error("unmapped constraint violation (constraint=%s)", name, exc_info=exc)
            return Internal()

        field, message = entry
        logger.debug("constraint %s violated, reporting on field %r", name, field)
        return ValidationFailed({field: [message]})

    @contextmanager
    def intercept(self):
        """
        Wrap a single mutation so an ``IntegrityError`` leaves it already
        translated.  Use it around the exact statement (or flush) that can
        violate a constraint, inside the enclosing transaction, so rollback
        happens after translation.
        """
        try:
            yield
        except IntegrityError as exc:
            raise self.translate(exc) from exc


# Module-level singleton shared across services.
constraint_errors = ConstraintErrorMapper()
