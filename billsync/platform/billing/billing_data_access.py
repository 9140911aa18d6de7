"""Repository pattern for billing database operations.

This module handles all database interactions for billing, providing a clean
interface between the service layer and CRUD operations. Records cross the
boundary as pydantic schemas; the repository remembers what it handed out and
writes back only the fields that changed.
"""

import copy
import uuid
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from billsync import crud, schemas
from billsync.core.datetime_utils import utc_now_naive
from billsync.core.exceptions import DuplicateRecordError
from billsync.platform.billing.snapshot import snapshot_diff, take_snapshot
from billsync.schemas.subscription import SUPERSEDED_STATUSES, TERMINAL_STATUSES

RecordType = TypeVar("RecordType", bound=BaseModel)

# Fields owned by the store, never part of a diff
_MANAGED_FIELDS = frozenset({"id", "created_at", "modified_at"})


class BillingRepository(ABC):
    """Persistence port of the billing subsystem."""

    def __init__(self) -> None:
        """Initialize the snapshot registry."""
        self._snapshots: Dict[Tuple[str, UUID], dict[str, Any]] = {}

    # Snapshot tracking

    def _remember(self, record: Optional[RecordType]) -> Optional[RecordType]:
        if record is not None and record.id is not None:
            self._snapshots[(type(record).__name__, record.id)] = take_snapshot(record)
        return record

    def _changes(self, record: BaseModel) -> dict[str, Any]:
        """Fields of ``record`` that differ from the snapshot taken when it was loaded."""
        before = self._snapshots.get((type(record).__name__, record.id), {})
        changes = snapshot_diff(before, record)
        return {key: value for key, value in changes.items() if key not in _MANAGED_FIELDS}

    # Organizations

    @abstractmethod
    async def get_organization(self, organization_id: UUID) -> Optional[schemas.Organization]:
        """Get an organization by id."""
        pass

    @abstractmethod
    async def save_organization(self, organization: schemas.Organization) -> schemas.Organization:
        """Insert a new organization or write back its changed fields."""
        pass

    # Catalog

    @abstractmethod
    async def get_plan(self, plan_id: UUID) -> Optional[schemas.BillingPlan]:
        """Get a billing plan by id."""
        pass

    @abstractmethod
    async def save_plan(self, plan: schemas.BillingPlan) -> schemas.BillingPlan:
        """Insert a new plan or write back its changed fields."""
        pass

    @abstractmethod
    async def get_plan_price(self, price_id: UUID) -> Optional[schemas.BillingPlanPrice]:
        """Get a plan price by id."""
        pass

    @abstractmethod
    async def save_plan_price(self, price: schemas.BillingPlanPrice) -> schemas.BillingPlanPrice:
        """Insert a new plan price or write back its changed fields."""
        pass

    # Subscriptions

    @abstractmethod
    async def get_subscription(self, subscription_id: UUID) -> Optional[schemas.Subscription]:
        """Get a subscription by id."""
        pass

    @abstractmethod
    async def get_subscription_by_provider_id(
        self, provider_subscription_id: str
    ) -> Optional[schemas.Subscription]:
        """Get the row linked to a provider subscription, ignoring superseded rows."""
        pass

    @abstractmethod
    async def get_subscription_by_natural_key(
        self, organization_id: UUID, billing_plan_price_id: UUID
    ) -> Optional[schemas.Subscription]:
        """Get the non-terminal row for an organization and plan price."""
        pass

    @abstractmethod
    async def get_active_subscription(
        self, organization_id: UUID
    ) -> Optional[schemas.Subscription]:
        """Get the non-terminal row of an organization, preferring one with no end scheduled."""
        pass

    @abstractmethod
    async def find_subscriptions(self, **conditions: Any) -> list[schemas.Subscription]:
        """Find subscriptions by field conditions.

        Keys follow the CRUD convention: ``field`` for equality and
        ``field__in``, ``field__not_in`` or ``field__ne`` for the other tests.
        """
        pass

    @abstractmethod
    async def save_subscription(self, subscription: schemas.Subscription) -> schemas.Subscription:
        """Insert a new subscription or write back its changed fields.

        Raises:
            DuplicateRecordError: if the write collides with a live row on the
                natural key or the provider subscription id.
        """
        pass

    @abstractmethod
    async def get_subscription_detail(
        self, subscription_id: UUID
    ) -> Optional[schemas.SubscriptionDetail]:
        """Get the read projection of a subscription joined with its plan."""
        pass


def _column_value(value: Any) -> Any:
    """Convert a schema value to what the ORM column expects."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_column_value(item) for item in value]
    return value


def _column_values(values: dict[str, Any]) -> dict[str, Any]:
    return {key: _column_value(value) for key, value in values.items()}


class SqlBillingRepository(BillingRepository):
    """Billing repository backed by an async SQLAlchemy session."""

    def __init__(self, db: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            db: Session owned by the caller for the duration of one unit of work
        """
        super().__init__()
        self.db = db

    def _to_schema(self, schema: Type[RecordType], db_obj: Any) -> Optional[RecordType]:
        if db_obj is None:
            return None
        return self._remember(schema.model_validate(db_obj, from_attributes=True))

    async def _save(
        self, crud_obj: Any, schema: Type[RecordType], record: RecordType
    ) -> RecordType:
        if record.id is None:
            values = record.model_dump(exclude=set(_MANAGED_FIELDS))
            db_obj = await crud_obj.create(self.db, obj_in=_column_values(values))
            return self._to_schema(schema, db_obj)

        changes = self._changes(record)
        if not changes:
            return record

        db_obj = await crud_obj.get(self.db, id=record.id)
        db_obj = await crud_obj.update(self.db, db_obj=db_obj, obj_in=_column_values(changes))
        return self._to_schema(schema, db_obj)

    async def get_organization(self, organization_id: UUID) -> Optional[schemas.Organization]:
        """Get an organization by id."""
        db_obj = await crud.organization.get(self.db, id=organization_id)
        return self._to_schema(schemas.Organization, db_obj)

    async def save_organization(self, organization: schemas.Organization) -> schemas.Organization:
        """Insert or update an organization."""
        return await self._save(crud.organization, schemas.Organization, organization)

    async def get_plan(self, plan_id: UUID) -> Optional[schemas.BillingPlan]:
        """Get a billing plan by id."""
        db_obj = await crud.billing_plan.get(self.db, id=plan_id)
        return self._to_schema(schemas.BillingPlan, db_obj)

    async def save_plan(self, plan: schemas.BillingPlan) -> schemas.BillingPlan:
        """Insert or update a billing plan."""
        return await self._save(crud.billing_plan, schemas.BillingPlan, plan)

    async def get_plan_price(self, price_id: UUID) -> Optional[schemas.BillingPlanPrice]:
        """Get a plan price by id."""
        db_obj = await crud.billing_plan_price.get(self.db, id=price_id)
        return self._to_schema(schemas.BillingPlanPrice, db_obj)

    async def save_plan_price(self, price: schemas.BillingPlanPrice) -> schemas.BillingPlanPrice:
        """Insert or update a plan price."""
        return await self._save(crud.billing_plan_price, schemas.BillingPlanPrice, price)

    async def get_subscription(self, subscription_id: UUID) -> Optional[schemas.Subscription]:
        """Get a subscription by id."""
        db_obj = await crud.subscription.get(self.db, id=subscription_id)
        return self._to_schema(schemas.Subscription, db_obj)

    async def get_subscription_by_provider_id(
        self, provider_subscription_id: str
    ) -> Optional[schemas.Subscription]:
        """Get the live row linked to a provider subscription."""
        if not provider_subscription_id:
            return None
        db_obj = await crud.subscription.get_by_provider_subscription_id(
            self.db, provider_subscription_id=provider_subscription_id
        )
        return self._to_schema(schemas.Subscription, db_obj)

    async def get_subscription_by_natural_key(
        self, organization_id: UUID, billing_plan_price_id: UUID
    ) -> Optional[schemas.Subscription]:
        """Get the non-terminal row for an organization and plan price."""
        db_obj = await crud.subscription.get_by_natural_key(
            self.db, organization_id=organization_id, billing_plan_price_id=billing_plan_price_id
        )
        return self._to_schema(schemas.Subscription, db_obj)

    async def get_active_subscription(
        self, organization_id: UUID
    ) -> Optional[schemas.Subscription]:
        """Get the subscription currently in force for an organization."""
        db_obj = await crud.subscription.get_active(self.db, organization_id=organization_id)
        return self._to_schema(schemas.Subscription, db_obj)

    async def find_subscriptions(self, **conditions: Any) -> list[schemas.Subscription]:
        """Find subscriptions by field conditions."""
        db_objs = await crud.subscription.find_all(self.db, **_column_values(conditions))
        return [self._to_schema(schemas.Subscription, db_obj) for db_obj in db_objs]

    async def save_subscription(self, subscription: schemas.Subscription) -> schemas.Subscription:
        """Insert or update a subscription."""
        try:
            return await self._save(crud.subscription, schemas.Subscription, subscription)
        except IntegrityError as e:
            await self.db.rollback()
            raise DuplicateRecordError(
                "A live subscription already exists for this plan price or provider subscription"
            ) from e

    async def get_subscription_detail(
        self, subscription_id: UUID
    ) -> Optional[schemas.SubscriptionDetail]:
        """Get a subscription joined with its plan price and plan."""
        row = await crud.subscription.get_with_plan(self.db, id=subscription_id)
        if row is None:
            return None
        subscription, price, plan = row
        return schemas.SubscriptionDetail(
            subscription=schemas.Subscription.model_validate(subscription, from_attributes=True),
            billing_plan_price_price=price.price,
            billing_plan_price_currency=price.currency,
            billing_plan_name=plan.name,
            billing_plan_level=plan.level,
        )


def _matches(record: BaseModel, conditions: dict[str, Any]) -> bool:
    for key, expected in conditions.items():
        field, _, op = key.partition("__")
        value = getattr(record, field)
        if op == "in":
            ok = value in set(expected)
        elif op == "not_in":
            ok = value not in set(expected)
        elif op == "ne":
            ok = value != expected
        elif op == "":
            ok = value == expected
        else:
            raise ValueError(f"Unsupported condition operator: {op}")
        if not ok:
            return False
    return True


class InMemoryBillingRepository(BillingRepository):
    """Billing repository holding records in process memory.

    Mirrors the uniqueness rules of the database schema so that concurrent
    writers collide the same way. Used in tests and local development.
    """

    def __init__(self) -> None:
        """Initialize empty tables."""
        super().__init__()
        self.organizations: Dict[UUID, schemas.Organization] = {}
        self.plans: Dict[UUID, schemas.BillingPlan] = {}
        self.plan_prices: Dict[UUID, schemas.BillingPlanPrice] = {}
        self.subscriptions: Dict[UUID, schemas.Subscription] = {}
        self.writes = 0

    def _load(self, table: Dict[UUID, RecordType], record_id: UUID) -> Optional[RecordType]:
        record = table.get(record_id)
        return self._remember(copy.deepcopy(record)) if record is not None else None

    def _store(self, table: Dict[UUID, RecordType], record: RecordType) -> RecordType:
        now = utc_now_naive()
        if record.id is None:
            record = record.model_copy(update={"id": uuid.uuid4(), "created_at": now})
        elif not self._changes(record):
            return record
        record = record.model_copy(update={"modified_at": now})
        table[record.id] = copy.deepcopy(record)
        self.writes += 1
        return self._remember(record)

    def _check_unique(self, subscription: schemas.Subscription) -> None:
        for other in self.subscriptions.values():
            if other.id == subscription.id:
                continue
            if (
                not subscription.status.is_terminal
                and not other.status.is_terminal
                and other.organization_id == subscription.organization_id
                and other.billing_plan_price_id == subscription.billing_plan_price_id
            ):
                raise DuplicateRecordError(
                    "A live subscription already exists for this organization and plan price"
                )
            if (
                subscription.provider_subscription_id
                and not subscription.status.is_superseded
                and not other.status.is_superseded
                and other.provider_subscription_id == subscription.provider_subscription_id
            ):
                raise DuplicateRecordError(
                    "Another subscription is already linked to this provider subscription"
                )

    async def get_organization(self, organization_id: UUID) -> Optional[schemas.Organization]:
        """Get an organization by id."""
        return self._load(self.organizations, organization_id)

    async def save_organization(self, organization: schemas.Organization) -> schemas.Organization:
        """Insert or update an organization."""
        return self._store(self.organizations, organization)

    async def get_plan(self, plan_id: UUID) -> Optional[schemas.BillingPlan]:
        """Get a billing plan by id."""
        return self._load(self.plans, plan_id)

    async def save_plan(self, plan: schemas.BillingPlan) -> schemas.BillingPlan:
        """Insert or update a billing plan."""
        return self._store(self.plans, plan)

    async def get_plan_price(self, price_id: UUID) -> Optional[schemas.BillingPlanPrice]:
        """Get a plan price by id."""
        return self._load(self.plan_prices, price_id)

    async def save_plan_price(self, price: schemas.BillingPlanPrice) -> schemas.BillingPlanPrice:
        """Insert or update a plan price."""
        return self._store(self.plan_prices, price)

    async def get_subscription(self, subscription_id: UUID) -> Optional[schemas.Subscription]:
        """Get a subscription by id."""
        return self._load(self.subscriptions, subscription_id)

    async def _first(
        self, order_key: Any = None, **conditions: Any
    ) -> Optional[schemas.Subscription]:
        matches = [s for s in self.subscriptions.values() if _matches(s, conditions)]
        if not matches:
            return None
        # Newest first
        matches.sort(key=lambda s: s.created_at, reverse=True)
        if order_key is not None:
            matches.sort(key=order_key)
        return self._load(self.subscriptions, matches[0].id)

    async def get_subscription_by_provider_id(
        self, provider_subscription_id: str
    ) -> Optional[schemas.Subscription]:
        """Get the live row linked to a provider subscription."""
        if not provider_subscription_id:
            return None
        return await self._first(
            provider_subscription_id=provider_subscription_id,
            status__not_in=SUPERSEDED_STATUSES,
        )

    async def get_subscription_by_natural_key(
        self, organization_id: UUID, billing_plan_price_id: UUID
    ) -> Optional[schemas.Subscription]:
        """Get the non-terminal row for an organization and plan price."""
        return await self._first(
            organization_id=organization_id,
            billing_plan_price_id=billing_plan_price_id,
            status__not_in=TERMINAL_STATUSES,
        )

    async def get_active_subscription(
        self, organization_id: UUID
    ) -> Optional[schemas.Subscription]:
        """Get the subscription currently in force for an organization."""
        return await self._first(
            order_key=lambda s: 0 if s.end_ts == 0 else 1,
            organization_id=organization_id,
            status__not_in=TERMINAL_STATUSES,
        )

    async def find_subscriptions(self, **conditions: Any) -> list[schemas.Subscription]:
        """Find subscriptions by field conditions."""
        return [
            self._load(self.subscriptions, s.id)
            for s in self.subscriptions.values()
            if _matches(s, conditions)
        ]

    async def save_subscription(self, subscription: schemas.Subscription) -> schemas.Subscription:
        """Insert or update a subscription."""
        self._check_unique(subscription)
        return self._store(self.subscriptions, subscription)

    async def get_subscription_detail(
        self, subscription_id: UUID
    ) -> Optional[schemas.SubscriptionDetail]:
        """Get a subscription joined with its plan price and plan."""
        subscription = self.subscriptions.get(subscription_id)
        if subscription is None or subscription.billing_plan_price_id is None:
            return None
        price = self.plan_prices.get(subscription.billing_plan_price_id)
        plan = self.plans.get(price.billing_plan_id) if price else None
        if price is None or plan is None:
            return None
        return schemas.SubscriptionDetail(
            subscription=copy.deepcopy(subscription),
            billing_plan_price_price=price.price,
            billing_plan_price_currency=price.currency,
            billing_plan_name=plan.name,
            billing_plan_level=plan.level,
        )
