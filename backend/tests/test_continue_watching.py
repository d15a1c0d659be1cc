"""
Tests for the continue-watching aggregator
"""
from app.models.progress import MediaType
from app.services.continue_watching import ContinueWatchingAggregator
from app.services.identity import Identity
from conftest import FakeCatalog, FakeProgressStore, make_record

GUEST = Identity(session_id="g1")


def _aggregator(records, catalog=None, **kwargs):
    kwargs.setdefault("min_pct", 5)
    kwargs.setdefault("max_pct", 95)
    return ContinueWatchingAggregator(FakeProgressStore(records), catalog or FakeCatalog(), **kwargs)


class TestFiltering:
    """Only started, unfinished titles are listed"""

    async def test_keeps_only_mid_band(self):
        records = [
            make_record(movie_id=1, progress=3),
            make_record(movie_id=2, progress=50),
            make_record(movie_id=3, progress=97),
        ]

        items = await _aggregator(records).build(GUEST)

        assert [i.item.id for i in items] == [2]
        assert items[0].progress == 50

    async def test_bounds_are_exclusive(self):
        records = [make_record(movie_id=1, progress=5), make_record(movie_id=2, progress=95)]

        assert await _aggregator(records).build(GUEST) == []

    async def test_other_identities_are_ignored(self):
        records = [make_record(movie_id=1, progress=50, session_id="someone-else")]

        assert await _aggregator(records).build(GUEST) == []


class TestResolution:
    """Catalog lookups are per-item and failures are isolated"""

    async def test_failed_lookup_drops_only_that_item(self):
        records = [make_record(movie_id=1, progress=40), make_record(movie_id=2, progress=60)]

        items = await _aggregator(records, FakeCatalog(broken={1})).build(GUEST)

        assert len(items) == 1
        assert items[0].item.id == 2

    async def test_unexpected_catalog_error_drops_item(self):
        class ExplodingCatalog(FakeCatalog):
            async def resolve(self, content_id, media_type):
                if content_id == 1:
                    raise KeyError("results")
                return await super().resolve(content_id, media_type)

        records = [make_record(movie_id=1, progress=40), make_record(movie_id=2, progress=60)]

        items = await _aggregator(records, ExplodingCatalog()).build(GUEST)

        assert [i.item.id for i in items] == [2]

    async def test_order_follows_store(self):
        records = [make_record(movie_id=m, progress=50) for m in (9, 3, 7)]

        items = await _aggregator(records).build(GUEST)

        assert [i.item.id for i in items] == [9, 3, 7]

    async def test_media_type_tagged(self):
        records = [make_record(movie_id=5, progress=30, media_type=MediaType.tv, season=1, episode=2)]

        items = await _aggregator(records).build(GUEST)

        assert items[0].media_type == "tv"
        assert items[0].item.kind == "tv"

    async def test_filtered_records_are_not_resolved(self):
        catalog = FakeCatalog()
        records = [make_record(movie_id=1, progress=1), make_record(movie_id=2, progress=50)]

        await _aggregator(records, catalog).build(GUEST)

        assert catalog.calls == [(2, MediaType.movie)]


class TestStoreFailure:
    """A broken store yields an empty list, not an error"""

    async def test_store_failure_returns_empty(self):
        aggregator = ContinueWatchingAggregator(FakeProgressStore(fail_list=True), FakeCatalog())

        assert await aggregator.build(GUEST) == []

    async def test_limit_passed_to_store(self):
        records = [make_record(movie_id=m, progress=50) for m in range(1, 6)]

        items = await _aggregator(records, limit=2).build(GUEST)

        assert len(items) == 2
