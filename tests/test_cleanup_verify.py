"""旧 URL 清理与迁移核对测试"""

from assetops.cleanup import UrlCleanupRunner
from assetops.migration import MigrationRunner
from assetops.models import Tier
from assetops.verify import render, verify_migration

from tests.conftest import PUBLIC


class TestUrlCleanup:
    """清理 seed-generated 旧 URL"""

    def test_removes_stale_urls(self, record_store, blob_store, add_style):
        keep = f"{PUBLIC}/styles/s1/a.png"
        stale = f"{PUBLIC}/styles/seed-generated/a.png"
        add_style("s1", images=[stale, keep])
        add_style("s2", images=[f"{PUBLIC}/styles/s2/b.png"])
        add_style("s3")

        dry = UrlCleanupRunner(record_store, blob_store, dry_run=True).run()
        assert record_store.find_one("s1").image_urls == [stale, keep]

        real = UrlCleanupRunner(record_store, blob_store, dry_run=False).run()
        assert dry.counts() == real.counts()
        assert real.items_processed == 2
        assert real.items_updated == 1
        assert real.info["urls_removed"] == 1
        assert record_store.find_one("s1").image_urls == [keep]

        again = UrlCleanupRunner(record_store, blob_store, dry_run=False).run()
        assert again.items_updated == 0


class TestVerify:
    """迁移核对"""

    def test_summary_after_migration(self, record_store, add_style):
        add_style("s1", gallery=[f"{PUBLIC}/styles/s1/{i}.png" for i in range(4)], name="Boho")
        add_style("s2", tier=Tier.LUXURY)
        MigrationRunner(record_store, dry_run=False).run()

        summary = verify_migration(record_store)

        assert summary["total_styles"] == 2
        assert summary["styles_with_tier"] == 2
        assert summary["styles_with_images"] == 1
        assert summary["total_images"] == 4
        assert summary["categories"] == {"DETAIL": 1, "OVERVIEW": 3}
        assert summary["styles"] == [{"id": "s1", "name": "Boho", "images": 4, "tier": "REGULAR"}]
        assert "Boho - 4 张 (REGULAR)" in render(summary)

    def test_unset_category(self, record_store, add_style):
        add_style("s1", images=[f"{PUBLIC}/styles/s1/a.png"])
        summary = verify_migration(record_store)
        assert summary["categories"] == {"UNSET": 1}
        assert summary["styles_with_tier"] == 0
