"""Base CRUD class."""

from typing import Any, Generic, Optional, Sequence, Type, TypeVar, Union
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from billsync.models._base import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """CRUD base class.

    Writes are flushed and, unless ``commit=False`` is passed, committed. The
    caller owns rollback on failure.
    """

    def __init__(self, model: Type[ModelType]):
        """CRUD object with default methods.

        Args:
        ----
            model (Type[ModelType]): The model to be used in the CRUD operations.

        """
        self.model = model

    def _filtered(self, conditions: dict[str, Any]) -> Select:
        """Build a select from keyword conditions.

        A plain key is an equality test. The suffixes ``__in``, ``__not_in`` and
        ``__ne`` select membership, exclusion and inequality.
        """
        query = select(self.model)
        for key, value in conditions.items():
            field, _, op = key.partition("__")
            column = getattr(self.model, field)
            if op == "in":
                query = query.where(column.in_(list(value)))
            elif op == "not_in":
                query = query.where(column.not_in(list(value)))
            elif op == "ne":
                query = query.where(column != value)
            elif op == "":
                query = query.where(column == value)
            else:
                raise ValueError(f"Unsupported condition operator: {op}")
        return query

    async def get(self, db: AsyncSession, id: UUID) -> Optional[ModelType]:
        """Get a single object by ID.

        Args:
        ----
            db (AsyncSession): The database session.
            id (UUID): The UUID of the object to get.

        Returns:
        -------
            Optional[ModelType]: The object with the given ID.

        """
        result = await db.execute(select(self.model).where(self.model.id == id))
        return result.unique().scalar_one_or_none()

    async def find_first(
        self, db: AsyncSession, *, order_by: Sequence[Any] = (), **conditions: Any
    ) -> Optional[ModelType]:
        """Get the first object matching all conditions, or None."""
        query = self._filtered(conditions).order_by(*order_by).limit(1)
        result = await db.execute(query)
        return result.unique().scalars().first()

    async def find_all(
        self, db: AsyncSession, *, order_by: Sequence[Any] = (), **conditions: Any
    ) -> list[ModelType]:
        """Get all objects matching all conditions.

        Args:
        ----
            db (AsyncSession): The database session.
            order_by (Sequence): Columns or expressions to order by.
            **conditions: Field conditions, see ``_filtered``.

        Returns:
        -------
            list[ModelType]: The matching objects.

        """
        query = self._filtered(conditions).order_by(*order_by)
        result = await db.execute(query)
        return list(result.unique().scalars().all())

    async def create(
        self,
        db: AsyncSession,
        *,
        obj_in: Union[CreateSchemaType, dict[str, Any]],
        commit: bool = True,
    ) -> ModelType:
        """Create a new object.

        Args:
        ----
            db (AsyncSession): The database session.
            obj_in (CreateSchemaType): The object to create.
            commit (bool): Commit the transaction after the insert.

        Returns:
        -------
            ModelType: The created object.

        """
        if not isinstance(obj_in, dict):
            obj_in = obj_in.model_dump()
        db_obj = self.model(**obj_in)
        db.add(db_obj)
        await db.flush()

        if commit:
            await db.commit()
            await db.refresh(db_obj)

        return db_obj

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        obj_in: Union[UpdateSchemaType, dict[str, Any]],
        commit: bool = True,
    ) -> ModelType:
        """Update an object.

        Args:
        ----
            db (AsyncSession): The database session.
            db_obj (ModelType): The object to update.
            obj_in (Union[UpdateSchemaType, Dict[str, Any]]): The new object data.
            commit (bool): Commit the transaction after the update.

        Returns:
        -------
            ModelType: The updated object

        """
        if not isinstance(obj_in, dict):
            obj_in = obj_in.model_dump(exclude_unset=True)

        for key, value in obj_in.items():
            if hasattr(db_obj, key):
                setattr(db_obj, key, value)
        db.add(db_obj)
        await db.flush()

        if commit:
            await db.commit()
            await db.refresh(db_obj)

        return db_obj
