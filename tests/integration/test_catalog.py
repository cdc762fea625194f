"""Achievement catalog seeding and lookup tests."""

from __future__ import annotations

import pytest

from skillpath.gamification import catalog
from skillpath.gamification.actions import CATEGORIES, RARITIES


class TestSeed:
    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, db_session):
        # The database fixture already seeded once
        assert await catalog.seed_achievements(db_session) == 0
        definitions = await catalog.list_active(db_session)
        assert len(definitions) == len(catalog.ACHIEVEMENT_SEED_DATA)

    @pytest.mark.asyncio
    async def test_definitions_are_well_formed(self, db_session):
        for definition in await catalog.list_active(db_session):
            assert definition.category in CATEGORIES
            assert definition.rarity in RARITIES
            assert definition.points > 0
            assert "type" in definition.criteria

    def test_slugs_unique(self):
        slugs = [d["slug"] for d in catalog.ACHIEVEMENT_SEED_DATA]
        assert len(slugs) == len(set(slugs))


class TestGetByRef:
    @pytest.mark.asyncio
    async def test_by_slug_and_id(self, db_session):
        by_slug = await catalog.get_by_ref(db_session, "module-master")
        assert by_slug is not None
        assert by_slug.title == "Module Master"
        by_id = await catalog.get_by_ref(db_session, str(by_slug.id))
        assert by_id is by_slug

    @pytest.mark.asyncio
    async def test_missing(self, db_session):
        assert await catalog.get_by_ref(db_session, "nope") is None
        assert await catalog.get_by_ref(db_session, "99999") is None
