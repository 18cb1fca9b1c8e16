"""记录库适配层测试"""

import pytest
from sqlmodel import Session, select

from assetops.errors import NotFoundError, StoreIOError
from assetops.models import ImageCategory, StyleImage, Tier
from assetops.records import SqlRecordStore, make_engine

from tests.conftest import PUBLIC, asset


class TestFindMany:
    """查询测试"""

    def test_all_sorted_by_id(self, record_store, add_style):
        add_style("b")
        add_style("a", images=[f"{PUBLIC}/styles/a/1.png"])
        add_style("c")
        assert [r.id for r in record_store.find_many()] == ["a", "b", "c"]

    def test_ids_and_limit(self, record_store, add_style):
        for sid in ("a", "b", "c"):
            add_style(sid)
        assert [r.id for r in record_store.find_many(ids=["c", "a", "zz"])] == ["a", "c"]
        assert [r.id for r in record_store.find_many(limit=2)] == ["a", "b"]

    def test_has_images_filter(self, record_store, add_style):
        add_style("a", images=[f"{PUBLIC}/styles/a/1.png"])
        add_style("b")
        assert [r.id for r in record_store.find_many(has_images=True)] == ["a"]
        assert [r.id for r in record_store.find_many(has_images=False)] == ["b"]

    def test_images_ordered_by_display_order(self, record_store, add_style):
        urls = [f"{PUBLIC}/styles/a/{i}.png" for i in range(3)]
        add_style("a", images=urls, gallery=["g1"], tier=Tier.LUXURY, name="Alpha")
        rec = record_store.find_one("a")
        assert rec.image_urls == urls
        assert rec.legacy_gallery == ["g1"]
        assert rec.tier == Tier.LUXURY
        assert rec.label == "Alpha"
        assert rec.is_migrated

    def test_find_one_missing(self, record_store):
        with pytest.raises(NotFoundError):
            record_store.find_one("ghost")


class TestUpdates:
    """写入测试"""

    def test_update_images_replaces_whole_list(self, record_store, add_style, engine):
        add_style("a", images=[f"{PUBLIC}/styles/a/old.png"])
        new = [
            asset(f"{PUBLIC}/styles/a/x.png", 0, owner="a", category=ImageCategory.OVERVIEW),
            asset(f"{PUBLIC}/styles/a/y.png", 1, owner="a"),
        ]
        new[0].tags = ["migrated"]

        record_store.update_images("a", new)
        rec = record_store.find_one("a")

        assert rec.image_urls == [f"{PUBLIC}/styles/a/x.png", f"{PUBLIC}/styles/a/y.png"]
        assert rec.images[0].category == ImageCategory.OVERVIEW
        assert rec.images[0].tags == ["migrated"]
        assert rec.images[1].category is None
        with Session(engine) as sess:
            assert len(sess.exec(select(StyleImage)).all()) == 2

    def test_update_images_other_record_untouched(self, record_store, add_style):
        add_style("a", images=[f"{PUBLIC}/styles/a/1.png"])
        add_style("b", images=[f"{PUBLIC}/styles/b/1.png"])
        record_store.update_images("a", [])
        assert record_store.find_one("a").images == []
        assert record_store.find_one("b").image_urls == [f"{PUBLIC}/styles/b/1.png"]

    def test_update_missing_record(self, record_store):
        with pytest.raises(NotFoundError):
            record_store.update_images("ghost", [])
        with pytest.raises(NotFoundError):
            record_store.update_tier("ghost", Tier.REGULAR)

    def test_update_tier(self, record_store, add_style):
        add_style("a")
        record_store.update_tier("a", Tier.LUXURY)
        assert record_store.find_one("a").tier == Tier.LUXURY


class TestStoreErrors:
    """底层错误统一为 StoreIOError"""

    def test_missing_tables(self):
        store = SqlRecordStore(make_engine("sqlite:///:memory:"))
        with pytest.raises(StoreIOError):
            store.find_many()
