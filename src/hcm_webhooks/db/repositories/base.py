"""Base repository for tenant-owned rows.

Every table in this service carries ``id`` and ``tenant_id`` columns, and no
read or write may cross tenants. The base class builds the tenant predicate
once so subclasses only add their own filters.

Usage:
    class ThingRepository(TenantScopedRepository[ThingRecord]):
        pass

    repo = ThingRepository(db_session)
    thing = await repo.get_for_tenant(tenant_id, thing_id)
"""

from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import ColumnElement, select
from sqlalchemy.ext.asyncio import AsyncSession

from hcm_webhooks.db.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class TenantScopedRepository(Generic[ModelType]):
    """Repository over a model with integer ``id`` and ``tenant_id`` columns.

    Type Parameters:
        ModelType: The SQLAlchemy model class

    Attributes:
        model: The model class, taken from the generic parameter
        db: The database session
    """

    model: type[ModelType]

    def __init__(self, db: AsyncSession):
        self.db = db

    def __init_subclass__(cls, **kwargs):
        """Extract model type from generic parameter."""
        super().__init_subclass__(**kwargs)
        for base in getattr(cls, "__orig_bases__", []):
            args = getattr(base, "__args__", None)
            if args and isinstance(args[0], type) and issubclass(args[0], Base):
                cls.model = args[0]
                break

    def owned_by(self, tenant_id: UUID, row_id: int | None = None) -> list[ColumnElement[bool]]:
        """WHERE conditions restricting a statement to one tenant (and row)."""
        conditions: list[ColumnElement[bool]] = [self.model.tenant_id == tenant_id]
        if row_id is not None:
            conditions.append(self.model.id == row_id)
        return conditions

    async def get_for_tenant(self, tenant_id: UUID, row_id: int) -> ModelType | None:
        """Get a row by id, only if it belongs to ``tenant_id``."""
        result = await self.db.execute(select(self.model).where(*self.owned_by(tenant_id, row_id)))
        return result.scalar_one_or_none()

    async def create(self, obj: ModelType) -> ModelType:
        """Insert and commit, returning the row with generated columns loaded."""
        self.db.add(obj)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def update(self, obj: ModelType, updates: dict[str, Any]) -> ModelType:
        """Apply column values to a loaded row and commit.

        Raises:
            AttributeError: If ``updates`` names a column the model lacks
        """
        for name, value in updates.items():
            if not hasattr(obj, name):
                raise AttributeError(f"{self.model.__name__} has no column {name!r}")
            setattr(obj, name, value)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj
