from __future__ import annotations

from unittest.mock import Mock
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql

from lotline.core.context import reset_current_organization_id, set_current_organization_id
from lotline.core.repositories import (
    CarRepository,
    OrganizationContextMissingError,
    OrganizationRepository,
    TierRepository,
)
from lotline.models import Car, Organization


def test_organization_id_missing_raises() -> None:
    repo = CarRepository(session=Mock())

    with pytest.raises(OrganizationContextMissingError):
        _ = repo.organization_id


def test_scoped_select_contains_organization_filter() -> None:
    organization_id = uuid4()
    token = set_current_organization_id(organization_id)
    try:
        stmt = CarRepository(session=Mock())._scoped_select()
        sql = str(stmt.compile(dialect=postgresql.dialect(), compile_kwargs={"literal_binds": True}))

        assert "WHERE" in sql
        assert "cars.organization_id" in sql
        assert str(organization_id) in sql
    finally:
        reset_current_organization_id(token)


@pytest.mark.asyncio
async def test_car_count_excludes_sold_cars_and_other_organizations(session_factory) -> None:  # noqa: ANN001
    async with session_factory() as session:
        mine = Organization(name="Mine")
        theirs = Organization(name="Theirs")
        session.add_all([mine, theirs])
        await session.flush()
        session.add_all(
            [
                Car(organization_id=mine.id, vin="MINE0000000000001", make="VW", model="Golf", year=2020, status="in_stock"),
                Car(organization_id=mine.id, vin="MINE0000000000002", make="VW", model="Polo", year=2021, status="in_repair"),
                Car(organization_id=mine.id, vin="MINE0000000000003", make="VW", model="Up", year=2018, status="sold"),
                Car(organization_id=theirs.id, vin="THEI0000000000001", make="Kia", model="Rio", year=2022),
            ]
        )
        await session.commit()

    token = set_current_organization_id(mine.id)
    try:
        async with session_factory() as session:
            repo = CarRepository(session)
            assert await repo.count_active() == 2
            assert await repo.count() == 3
            assert len(await repo.list()) == 3
            other = await CarRepository(session).get(uuid4())
            assert other is None
    finally:
        reset_current_organization_id(token)


@pytest.mark.asyncio
async def test_tier_catalog_lookups(session_factory) -> None:  # noqa: ANN001
    async with session_factory() as session:
        tiers = TierRepository(session)

        online = await tiers.list_active(online_only=True)
        everything = await tiers.list_active()
        by_price = await tiers.get_by_price_id("price_business")
        champion = await tiers.get_by_name("champion")

    assert [tier.tier_name for tier in online] == ["starter", "professional", "business", "enterprise"]
    assert everything[-1].tier_name == "champion"
    assert by_price is not None and by_price.tier_name == "business"
    assert champion is not None and champion.car_limit is None


@pytest.mark.asyncio
async def test_find_organization_by_name_or_email(session_factory) -> None:  # noqa: ANN001
    async with session_factory() as session:
        session.add(Organization(name="Harbor Cars", email="sales@harbor.test"))
        await session.commit()

        repo = OrganizationRepository(session)
        by_name = await repo.find_by_name_or_email(name="Harbor Cars", email=None)
        by_email = await repo.find_by_name_or_email(name="Unknown", email="sales@harbor.test")
        nothing = await repo.find_by_name_or_email(name=None, email=None)

    assert by_name is not None and by_name.name == "Harbor Cars"
    assert by_email is not None and by_email.id == by_name.id
    assert nothing is None
