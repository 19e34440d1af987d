"""
Ownership-gated mutation of owned resources (articles, comments).

Update, for a resource matched by *criterion*:

1. Open a scoped transaction.
2. ``SELECT id, owner ... FOR UPDATE``.  The row lock serialises concurrent
   edits of the same resource: a second editor blocks here until the first
   transaction commits or rolls back, then sees the committed state.
3. No row: ``NotFound``.
4. Owner is not the caller: ``Forbidden``.  Nothing has been written yet.
5. ``UPDATE ... RETURNING`` with only the supplied fields, so absent fields
   keep their stored value and the post-update row comes back from the same
   statement.
6. A unique violation is translated by ``constraint_errors`` at the call
   site, before the transaction unwinds.
7. Commit on success; every other exit rolls back.

Delete folds the ownership check into the statement itself
(``DELETE ... WHERE <criterion> AND owner = caller``).  When no row was
deleted, an existence check tells ``Forbidden`` (it exists, someone else
owns it) from ``NotFound``.
"""
from collections.abc import Mapping
from typing import Any

from sqlalchemy import Row, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.auth.dependencies import Principal
from conduit.constraints import constraint_errors
from conduit.database import transaction
from conduit.errors import Forbidden, NotFound


class OwnershipMutator:
    """Ownership-checked update/delete for one mapped model."""

    def __init__(self, model, id_column: str, owner_column: str = "user_id") -> None:
        self.table = model.__table__
        self.id_column = self.table.c[id_column]
        self.owner_column = self.table.c[owner_column]

    def lock_statement(self, criterion):
        return (
            select(self.id_column, self.owner_column)
            .where(criterion)
            .with_for_update()
        )

    async def update(
        self,
        db: AsyncSession,
        principal: Principal,
        criterion,
        changes: Mapping[str, Any],
    ) -> Row:
        """
        Apply *changes* (``None`` values mean "keep") to the resource matched
        by *criterion* and return the full post-update row.
        """
        async with transaction(db):
            row = (await db.execute(self.lock_statement(criterion))).one_or_none()
            if row is None:
                raise NotFound()

            resource_id, owner_id = row
            if owner_id != principal.user_id:
                raise Forbidden()

            values = {name: value for name, value in changes.items() if value is not None}
            if values:
                stmt = (
                    update(self.table)
                    .where(self.id_column == resource_id)
                    .values(values)
                    .returning(*self.table.c)
                )
            else:
                # Nothing to write; read the locked row so the caller still
                # gets the current projection.
                stmt = select(*self.table.c).where(self.id_column == resource_id)

            with constraint_errors.intercept():
                updated = (await db.execute(stmt)).one()
        return updated

    async def delete(self, db: AsyncSession, principal: Principal, criterion) -> None:
        async with transaction(db):
            result = await db.execute(
                delete(self.table).where(criterion, self.owner_column == principal.user_id)
            )
            if result.rowcount:
                return

            existed = (
                await db.execute(select(select(self.id_column).where(criterion).exists()))
            ).scalar()
            if existed:
                raise Forbidden()
            raise NotFound()
