"""Unit tests for MatchEngine - mutual likes, discovery and match listing."""
import asyncio
import uuid

import pytest
from sqlalchemy import func, select

from spark.exceptions import NotFoundError, ValidationError
from spark.models.match import Match, Swipe
from spark.services.match_engine import canonical_pair


async def _count(session_factory, model):
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestCanonicalPair:

    def test_order_independent(self):
        a, b = uuid.uuid4(), uuid.uuid4()
        assert canonical_pair(a, b) == canonical_pair(b, a)
        low, high = canonical_pair(a, b)
        assert low < high

    def test_same_id_rejected(self):
        a = uuid.uuid4()
        with pytest.raises(ValidationError):
            canonical_pair(a, a)


class TestSwipe:

    async def test_mutual_like_creates_one_match(self, matches, make_profile, session_factory):
        a, b = await make_profile(), await make_profile()

        first = await matches.swipe(a.id, b.id, "like")
        assert first.matched is False
        assert first.match_id is None

        second = await matches.swipe(b.id, a.id, "like")
        assert second.matched is True
        assert second.match_id is not None

        again = await matches.swipe(a.id, b.id, "like")
        assert again.matched is False
        assert await _count(session_factory, Match) == 1

    async def test_match_pair_is_canonical(self, matched_pair, matches, session_factory):
        a, b, match_id = matched_pair
        async with session_factory() as session:
            match = await matches.get_match(session, match_id)
            assert (match.profile_a_id, match.profile_b_id) == canonical_pair(a.id, b.id)
            assert (await matches.match_for_pair(session, b.id, a.id)).id == match_id

    async def test_pass_never_matches(self, matches, make_profile):
        a, b = await make_profile(), await make_profile()
        await matches.swipe(a.id, b.id, "like")
        result = await matches.swipe(b.id, a.id, "pass")
        assert result.matched is False

    async def test_pass_then_like_matches(self, matches, make_profile):
        a, b = await make_profile(), await make_profile()
        await matches.swipe(b.id, a.id, "pass")
        assert (await matches.swipe(a.id, b.id, "like")).matched is False
        assert (await matches.swipe(b.id, a.id, "like")).matched is True

    async def test_concurrent_mutual_likes(self, matches, make_profile, session_factory):
        a, b = await make_profile(), await make_profile()
        results = await asyncio.gather(
            matches.swipe(a.id, b.id, "like"),
            matches.swipe(b.id, a.id, "like"),
        )
        assert sorted(r.matched for r in results) == [False, True]
        assert await _count(session_factory, Match) == 1

    async def test_every_pair_matches_once(self, matches, make_profile, session_factory):
        people = [await make_profile() for _ in range(4)]
        results = [
            await matches.swipe(x.id, y.id, "like")
            for x in people
            for y in people
            if x.id != y.id
        ]
        assert sum(r.matched for r in results) == 6
        assert await _count(session_factory, Match) == 6

    async def test_self_swipe_rejected(self, matches, make_profile):
        a = await make_profile()
        with pytest.raises(ValidationError):
            await matches.swipe(a.id, a.id, "like")

    async def test_unknown_target_writes_nothing(self, matches, make_profile, session_factory):
        a = await make_profile()
        with pytest.raises(NotFoundError):
            await matches.swipe(a.id, uuid.uuid4(), "like")
        assert await _count(session_factory, Swipe) == 0

    async def test_unknown_action_rejected(self, matches, make_profile):
        a, b = await make_profile(), await make_profile()
        with pytest.raises(ValidationError):
            await matches.swipe(a.id, b.id, "maybe")


class TestDiscovery:

    async def test_excludes_self_swiped_and_matched(self, matches, make_profile):
        me = await make_profile()
        others = [await make_profile() for _ in range(5)]
        liked, passed, mutual = others[0], others[1], others[2]

        await matches.swipe(me.id, liked.id, "like")
        await matches.swipe(me.id, passed.id, "pass")
        await matches.swipe(mutual.id, me.id, "like")
        await matches.swipe(me.id, mutual.id, "like")

        candidates = await matches.list_candidates(me.id, limit=50)
        ids = [c.id for c in candidates]
        assert me.id not in ids
        assert liked.id not in ids
        assert passed.id not in ids
        assert mutual.id not in ids
        assert set(ids) == {others[3].id, others[4].id}

    async def test_someone_who_liked_me_is_still_a_candidate(self, matches, make_profile):
        me, admirer = await make_profile(), await make_profile()
        await matches.swipe(admirer.id, me.id, "like")
        ids = [c.id for c in await matches.list_candidates(me.id, limit=10)]
        assert ids == [admirer.id]

    async def test_ascending_stable_order_across_pages(self, matches, make_profile):
        me = await make_profile()
        others = [await make_profile() for _ in range(7)]

        first = [c.id for c in await matches.list_candidates(me.id, limit=50)]
        second = [c.id for c in await matches.list_candidates(me.id, limit=50)]
        assert first == second
        assert first == sorted(o.id for o in others)

    async def test_limit_truncates(self, matches, make_profile):
        me = await make_profile()
        for _ in range(5):
            await make_profile()
        assert len(await matches.list_candidates(me.id, limit=3)) == 3
        assert await matches.list_candidates(me.id, limit=0) == []

    async def test_queue_reflects_new_swipes(self, matches, make_profile):
        me, x, y = await make_profile(), await make_profile(), await make_profile()
        assert len(await matches.list_candidates(me.id, limit=10)) == 2
        await matches.swipe(me.id, x.id, "pass")
        assert [c.id for c in await matches.list_candidates(me.id, limit=10)] == [y.id]

    async def test_queue_is_lazy_iterator(self, matches, make_profile):
        me = await make_profile()
        for _ in range(3):
            await make_profile()
        seen = []
        async for candidate in matches.discovery_queue(me.id):
            seen.append(candidate.id)
        assert len(seen) == 3

    async def test_unknown_profile_not_found(self, matches):
        with pytest.raises(NotFoundError):
            await matches.list_candidates(uuid.uuid4(), limit=5)


class TestListMatches:

    async def test_enriched_with_counterpart(self, matched_pair, matches):
        a, b, match_id = matched_pair

        for_a = await matches.list_matches(a.id)
        assert [v.match.id for v in for_a] == [match_id]
        assert for_a[0].counterpart.id == b.id
        assert for_a[0].counterpart.name == "Ben"

        for_b = await matches.list_matches(b.id)
        assert for_b[0].counterpart.id == a.id

    async def test_newest_first(self, matches, make_profile, clock):
        me = await make_profile()
        x, y = await make_profile(), await make_profile()
        for other in (x, y):
            await matches.swipe(me.id, other.id, "like")
            await matches.swipe(other.id, me.id, "like")
            clock.advance(minutes=1)

        views = await matches.list_matches(me.id)
        assert [v.counterpart.id for v in views] == [y.id, x.id]

    async def test_no_matches(self, matches, make_profile):
        me = await make_profile()
        assert await matches.list_matches(me.id) == []
