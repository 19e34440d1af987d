"""
Idempotent toggling of binary relationships (follow, favorite).

An edge is a directed ``(actor, target)`` pair with at most one row per
pair.  Creating an edge that already exists is a no-op, and so is removing
one that does not; the store's ``ON CONFLICT DO NOTHING`` handles concurrent
duplicate creates without locking.

The target is resolved from a caller-supplied SELECT whose first column is
the target's id.  The lookup and the edge write share one transaction, so
``NotFound`` and the mutation describe the same snapshot.
"""
import uuid

from sqlalchemy import Row, Select, delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.constraints import constraint_errors
from conduit.database import transaction
from conduit.errors import Forbidden, NotFound

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def insert_ignoring_conflicts(db: AsyncSession, table):
    dialect = db.get_bind().dialect.name
    try:
        insert = _DIALECT_INSERTS[dialect]
    except KeyError:
        raise NotImplementedError(f"no ON CONFLICT insert for dialect {dialect!r}") from None
    return insert(table).on_conflict_do_nothing()


class RelationshipToggle:
    """Create/remove edges in one association table."""

    def __init__(self, model, actor_column: str, target_column: str, *, allow_self: bool = True) -> None:
        self.table = model.__table__
        self.actor_column = self.table.c[actor_column]
        self.target_column = self.table.c[target_column]
        self.allow_self = allow_self

    async def _resolve_target(self, db: AsyncSession, target_query: Select) -> Row:
        target = (await db.execute(target_query)).one_or_none()
        if target is None:
            raise NotFound()
        return target

    async def create(self, db: AsyncSession, actor_id: uuid.UUID, target_query: Select) -> Row:
        """Ensure the edge ``actor -> target`` exists; return the target row."""
        async with transaction(db):
            target = await self._resolve_target(db, target_query)
            target_id = target[0]
            if not self.allow_self and target_id == actor_id:
                raise Forbidden()

            stmt = insert_ignoring_conflicts(db, self.table).values({
                self.actor_column.name: actor_id,
                self.target_column.name: target_id,
            })
            with constraint_errors.intercept():
                await db.execute(stmt)
        return target

    async def remove(self, db: AsyncSession, actor_id: uuid.UUID, target_query: Select) -> Row:
        """Ensure the edge ``actor -> target`` does not exist; return the target row."""
        async with transaction(db):
            target = await self._resolve_target(db, target_query)
            await db.execute(
                delete(self.table).where(
                    self.actor_column == actor_id,
                    self.target_column == target[0],
                )
            )
        return target

    def exists_clause(self, actor_id: uuid.UUID | None, target_column):
        """Correlated EXISTS for "does *actor_id* have an edge to *target_column*"."""
        return (
            select(self.actor_column)
            .where(self.actor_column == actor_id, self.target_column == target_column)
            .exists()
        )
