"""Tests for the stored range table."""

from decimal import Decimal
from uuid import uuid4

import pytest

from salary_engine.errors import NotFoundError, ReferentialIntegrityError, ValidationError
from salary_engine.services.range_service import RangeService
from tests.conftest import add_category, add_rule


class TestRangeCrud:
    """Test range create/update/delete."""

    async def test_create_and_list_ordered(self, session):
        service = RangeService(session)
        await service.create("Band 1", "50000", "6", max_amount="100000")
        await service.create("Tax free", "0", "0", max_amount="50000")

        names = [r.name for r in await service.list_all()]

        assert names == ["Tax free", "Band 1"]

    async def test_overlap_rejected(self, session):
        service = RangeService(session)
        await service.create("Band 1", "50000", "6", max_amount="100000")

        with pytest.raises(ValidationError, match="overlaps"):
            await service.create("Wide", "90000", "10")

    async def test_percentage_bounds(self, session):
        with pytest.raises(ValidationError) as exc_info:
            await RangeService(session).create("Bad", "0", "101")
        assert exc_info.value.field == "percentage"

    async def test_inverted_bounds(self, session):
        with pytest.raises(ValidationError):
            await RangeService(session).create("Bad", "1000", "5", max_amount="10")

    async def test_update_to_unbounded(self, session):
        service = RangeService(session)
        top = await service.create("Top", "100000", "12", max_amount="200000")

        updated = await service.update(top.range_id, max_amount=None)

        assert updated.max_amount is None

    async def test_update_keeps_bound_when_omitted(self, session):
        service = RangeService(session)
        band = await service.create("Band", "0", "5", max_amount="1000")

        updated = await service.update(band.range_id, percentage="7")

        assert updated.max_amount == Decimal("1000")
        assert updated.percentage == Decimal("7")

    async def test_update_into_overlap_rejected(self, session):
        service = RangeService(session)
        await service.create("Low", "0", "0", max_amount="50000")
        high = await service.create("High", "50000", "6")

        with pytest.raises(ValidationError):
            await service.update(high.range_id, min_amount="40000")

    async def test_delete_scoped_range_blocked(self, session):
        service = RangeService(session)
        band = await service.create("Band", "0", "5")
        category = await add_category(session, "APIT")
        await add_rule(session, category, "percentage", "5", salary_range=band)

        with pytest.raises(ReferentialIntegrityError):
            await service.delete(band.range_id)

    async def test_delete_unreferenced(self, session):
        service = RangeService(session)
        band = await service.create("Band", "0", "5")

        await service.delete(band.range_id)

        with pytest.raises(NotFoundError):
            await service.get(band.range_id)

    async def test_delete_unknown(self, session):
        with pytest.raises(NotFoundError):
            await RangeService(session).delete(uuid4())


class TestFindBracket:
    """Bracket lookup against stored ranges."""

    async def test_find_bracket(self, session, apit_brackets):
        service = RangeService(session)

        assert (await service.find_bracket("75000")).name == "Band 1"
        assert (await service.find_bracket("50000")).name == "Band 1"
        assert (await service.find_bracket("49999.99")).name == "Tax free"
        assert (await service.find_bracket("5000000")).name == "Band 2"

    async def test_find_bracket_in_gap(self, session):
        service = RangeService(session)
        await service.create("Low", "0", "0", max_amount="1000")
        await service.create("High", "2000", "5")

        assert await service.find_bracket("1500") is None

    async def test_load_table_matches_query(self, session, apit_brackets):
        table = await RangeService(session).load_table()

        assert len(table) == 3
        assert table.find_bracket(Decimal("75000")).range_id == apit_brackets[1].range_id
