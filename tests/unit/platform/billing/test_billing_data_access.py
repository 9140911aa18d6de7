"""Unit tests for the billing repositories."""

import uuid
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from billsync import schemas
from billsync.core.exceptions import DuplicateRecordError
from billsync.platform.billing.billing_data_access import SqlBillingRepository
from billsync.schemas.subscription import SubscriptionStatus as S


class TestInMemoryRepository:
    """Tests for InMemoryBillingRepository."""

    @pytest.mark.asyncio
    async def test_insert_assigns_id_and_timestamps(self, repository, organization):
        """New records get an id and creation time."""
        assert organization.id is not None
        assert organization.created_at is not None
        assert repository.writes == 1

    @pytest.mark.asyncio
    async def test_unchanged_record_is_not_written(self, repository, organization):
        """Saving a record without changes is a no-op."""
        loaded = await repository.get_organization(organization.id)
        writes = repository.writes

        await repository.save_organization(loaded)

        assert repository.writes == writes

    @pytest.mark.asyncio
    async def test_loaded_records_are_copies(self, repository, organization):
        """Mutating a loaded record does not change the store until saved."""
        loaded = await repository.get_organization(organization.id)
        loaded.name = "Changed"

        stored = await repository.get_organization(organization.id)
        assert stored.name == "Acme"

        await repository.save_organization(loaded)
        stored = await repository.get_organization(organization.id)
        assert stored.name == "Changed"
        assert stored.modified_at is not None

    @pytest.mark.asyncio
    async def test_natural_key_uniqueness(
        self, repository, organization, price, subscription_factory
    ):
        """Two live rows for one organization and price collide."""
        await subscription_factory(organization, price)

        with pytest.raises(DuplicateRecordError):
            await subscription_factory(organization, price, provider_subscription_id="sub_999")

    @pytest.mark.asyncio
    async def test_natural_key_frees_after_terminal(
        self, repository, organization, price, subscription_factory
    ):
        """A cancelled row does not block a new subscription to the same price."""
        await subscription_factory(organization, price, status=S.CANCELLED)

        fresh = await subscription_factory(
            organization, price, provider_subscription_id="sub_999"
        )

        assert fresh.status == S.ACTIVE

    @pytest.mark.asyncio
    async def test_provider_id_uniqueness(
        self, repository, organization, price, pro_price, subscription_factory
    ):
        """Two live rows cannot share a provider subscription."""
        await subscription_factory(organization, price)

        with pytest.raises(DuplicateRecordError):
            await subscription_factory(organization, pro_price)

    @pytest.mark.asyncio
    async def test_provider_id_shared_with_disabled_row(
        self, repository, organization, price, pro_price, subscription_factory
    ):
        """A disabled row may share its provider id with its replacement."""
        await subscription_factory(organization, price, status=S.DISABLED)

        replacement = await subscription_factory(organization, pro_price)

        found = await repository.get_subscription_by_provider_id("sub_123")
        assert found.id == replacement.id

    @pytest.mark.asyncio
    async def test_empty_provider_id_is_not_unique(
        self, repository, organization, price, pro_price, subscription_factory
    ):
        """Rows not yet linked to the provider do not collide."""
        await subscription_factory(organization, price, provider_subscription_id="")
        await subscription_factory(organization, pro_price, provider_subscription_id="")

        assert len(repository.subscriptions) == 2

    @pytest.mark.asyncio
    async def test_empty_provider_id_lookup_matches_nothing(
        self, repository, organization, price, subscription_factory
    ):
        """Looking up an empty provider id never returns an unlinked row."""
        await subscription_factory(organization, price, provider_subscription_id="")

        assert await repository.get_subscription_by_provider_id("") is None

    @pytest.mark.asyncio
    async def test_find_subscriptions(
        self, repository, organization, price, pro_price, subscription_factory
    ):
        """Condition suffixes filter like the SQL store."""
        active = await subscription_factory(organization, price)
        await subscription_factory(
            organization, pro_price, status=S.CANCELLED, provider_subscription_id="sub_2"
        )

        live = await repository.find_subscriptions(
            organization_id=organization.id, status__not_in=schemas.TERMINAL_STATUSES
        )
        by_status = await repository.find_subscriptions(status__in=[S.ACTIVE])
        others = await repository.find_subscriptions(provider_subscription_id__ne="sub_123")

        assert [s.id for s in live] == [active.id]
        assert [s.id for s in by_status] == [active.id]
        assert [s.provider_subscription_id for s in others] == ["sub_2"]

    @pytest.mark.asyncio
    async def test_unknown_operator(self, repository):
        """Unknown condition suffixes are rejected."""
        repository.subscriptions[uuid.uuid4()] = schemas.Subscription(
            id=uuid.uuid4(), organization_id=uuid.uuid4()
        )
        with pytest.raises(ValueError):
            await repository.find_subscriptions(status__like="act")


def _subscription_row(**overrides):
    values = {
        "id": uuid.uuid4(),
        "organization_id": uuid.uuid4(),
        "billing_plan_price_id": uuid.uuid4(),
        "billing_provider": "stripe",
        "provider_subscription_id": "sub_123",
        "provider_customer_id": "cus_123",
        "provider_price_id": "price_basic_monthly",
        "status": "active",
        "start_ts": 1,
        "end_ts": 0,
        "trial_end_ts": 0,
        "next_billing_ts": 2,
        "billing_cycle": "monthly",
        "amount": Decimal("29.00"),
        "currency": "USD",
        "coupon_code": "",
        "billing_info": None,
        "subscription_metadata": None,
        "created_at": None,
        "modified_at": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def mock_db():
    """Mock async database session."""
    return AsyncMock(spec=AsyncSession)


class TestSqlRepository:
    """Tests for SqlBillingRepository with the CRUD layer mocked."""

    @pytest.mark.asyncio
    async def test_get_converts_to_schema(self, mock_db):
        """ORM rows come back as schemas with enum fields."""
        row = _subscription_row()
        with patch("billsync.crud.subscription.get", AsyncMock(return_value=row)):
            repository = SqlBillingRepository(mock_db)
            subscription = await repository.get_subscription(row.id)

        assert isinstance(subscription, schemas.Subscription)
        assert subscription.status == S.ACTIVE
        assert subscription.billing_cycle == schemas.BillingCycle.MONTHLY

    @pytest.mark.asyncio
    async def test_missing_row(self, mock_db):
        """Missing rows come back as None."""
        with patch("billsync.crud.subscription.get", AsyncMock(return_value=None)):
            repository = SqlBillingRepository(mock_db)
            assert await repository.get_subscription(uuid.uuid4()) is None

    @pytest.mark.asyncio
    async def test_empty_provider_id_skips_query(self, mock_db):
        """An empty provider id is not sent to the database."""
        lookup = AsyncMock(return_value=_subscription_row(provider_subscription_id=""))
        with patch("billsync.crud.subscription.get_by_provider_subscription_id", lookup):
            repository = SqlBillingRepository(mock_db)
            assert await repository.get_subscription_by_provider_id("") is None

        lookup.assert_not_called()

    @pytest.mark.asyncio
    async def test_insert_passes_column_values(self, mock_db):
        """New rows are created with enums converted to their values."""
        subscription = schemas.Subscription(organization_id=uuid.uuid4(), status=S.PENDING)
        created = _subscription_row(status="pending")
        create = AsyncMock(return_value=created)

        with patch("billsync.crud.subscription.create", create):
            repository = SqlBillingRepository(mock_db)
            result = await repository.save_subscription(subscription)

        obj_in = create.call_args.kwargs["obj_in"]
        assert obj_in["status"] == "pending"
        assert obj_in["billing_provider"] == "stripe"
        assert "id" not in obj_in
        assert result.id == created.id

    @pytest.mark.asyncio
    async def test_update_writes_only_changes(self, mock_db):
        """Only the fields changed since load are written back."""
        row = _subscription_row()
        update = AsyncMock(return_value=_subscription_row(id=row.id, status="canceling"))

        with (
            patch("billsync.crud.subscription.get", AsyncMock(return_value=row)),
            patch("billsync.crud.subscription.update", update),
        ):
            repository = SqlBillingRepository(mock_db)
            subscription = await repository.get_subscription(row.id)
            subscription.status = S.CANCELING
            subscription.end_ts = 2
            await repository.save_subscription(subscription)

        assert update.call_args.kwargs["obj_in"] == {"status": "canceling", "end_ts": 2}

    @pytest.mark.asyncio
    async def test_unchanged_record_skips_update(self, mock_db):
        """Saving an unchanged record does not reach the database."""
        row = _subscription_row()
        update = AsyncMock()

        with (
            patch("billsync.crud.subscription.get", AsyncMock(return_value=row)),
            patch("billsync.crud.subscription.update", update),
        ):
            repository = SqlBillingRepository(mock_db)
            subscription = await repository.get_subscription(row.id)
            await repository.save_subscription(subscription)

        update.assert_not_called()

    @pytest.mark.asyncio
    async def test_integrity_error_becomes_duplicate(self, mock_db):
        """Unique index violations roll back and surface as duplicates."""
        error = IntegrityError("INSERT", {}, Exception("duplicate key"))
        with patch("billsync.crud.subscription.create", AsyncMock(side_effect=error)):
            repository = SqlBillingRepository(mock_db)
            with pytest.raises(DuplicateRecordError):
                await repository.save_subscription(
                    schemas.Subscription(organization_id=uuid.uuid4())
                )

        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_detail_joins_plan(self, mock_db):
        """The detail projection carries price and plan fields."""
        row = _subscription_row()
        price = MagicMock(price=Decimal("29.00"), currency="USD")
        plan = MagicMock(level=1)
        plan.name = "Basic"
        get_with_plan = AsyncMock(return_value=(row, price, plan))

        with patch("billsync.crud.subscription.get_with_plan", get_with_plan):
            repository = SqlBillingRepository(mock_db)
            detail = await repository.get_subscription_detail(row.id)

        assert detail.subscription.id == row.id
        assert detail.billing_plan_name == "Basic"
        assert detail.billing_plan_level == 1
        assert detail.billing_plan_price_price == Decimal("29.00")
