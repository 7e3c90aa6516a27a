"""
Tests for the sitemap export pipeline.

Tests collection, dry-run handling, error isolation, file output
and sitemap splitting.
"""

import pytest
from unittest.mock import Mock, patch
from datetime import datetime, timedelta

from vibechecc.pipeline import (
    COLLECTORS,
    CollectionResult,
    PipelineConfig,
    PipelineResult,
    SitemapPipeline,
    collect_sitemap_content,
    run_pipeline,
)
from vibechecc.storage import TAGS
from vibechecc.models import Tag

from tests.test_config import CONFIG, MESSAGES

pytestmark = pytest.mark.pipeline_orchestration

BASE_URL = CONFIG["base_url"]


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def content(storage, alice, bob, insert_vibe):
    """Two public vibes, one deleted vibe, two named users and a tag."""
    insert_vibe("user_alice", title="Rainy day", hours_ago=2)
    insert_vibe("user_bob", title="First snow", hours_ago=1)
    insert_vibe("user_bob", title="Gone", visibility="deleted")
    storage.insert(TAGS, Tag(name="cozy", count=2).to_record())
    storage.insert(TAGS, Tag(name="stale", count=0).to_record())
    return storage


def make_pipeline(storage, output_dir, **overrides):
    config = PipelineConfig(output_dir=str(output_dir), base_url=BASE_URL, **overrides)
    return SitemapPipeline(config, storage=storage)


# =============================================================================
# Config and Result
# =============================================================================

class TestPipelineConfig:

    def test_default_values(self):
        config = PipelineConfig()

        assert config.output_dir == "public"
        assert config.dry_run is False
        assert config.skip_robots is False

    def test_from_args(self):
        args = Mock(output_dir="dist", base_url=BASE_URL, max_entries=100, dry_run=True, verbose=False, skip_robots=True)

        config = PipelineConfig.from_args(args)

        assert config.output_dir == "dist"
        assert config.max_entries == 100
        assert config.dry_run is True
        assert config.skip_robots is True


class TestPipelineResult:

    def test_collection_counts(self):
        result = PipelineResult(started_at=datetime.now())
        result.collection_results = [
            CollectionResult(name="vibes", items_collected=3, success=True),
            CollectionResult(name="users", items_collected=0, success=False, error="down"),
        ]

        assert result.collections_succeeded == 1
        assert result.collections_failed == 1

    def test_duration(self):
        start = datetime(2025, 12, 25, 12, 0, 0)
        result = PipelineResult(started_at=start, finished_at=start + timedelta(seconds=3))

        assert result.duration_seconds == 3.0

    def test_summary(self):
        result = PipelineResult(started_at=datetime.now(), finished_at=datetime.now(), dry_run=True, entry_count=9)
        result.collection_results = [CollectionResult(name="vibes", items_collected=2, success=True)]

        summary = result.to_summary()

        assert MESSAGES["pipeline_summary"]["header"] in summary
        assert MESSAGES["pipeline_summary"]["content_label"] in summary
        assert MESSAGES["pipeline_summary"]["duration_label"] in summary
        assert "DRY RUN" in summary
        assert "Sitemap entries: 9" in summary


# =============================================================================
# Collection
# =============================================================================

class TestCollection:

    def test_collects_public_content(self, content):
        collected = collect_sitemap_content(content)

        assert [v.title for v in collected.vibes] == ["First snow", "Rainy day"]
        assert {u.username for u in collected.users} == {"alice", "bob"}
        assert [t.name for t in collected.tags] == ["cozy"]

    def test_users_without_username_skipped(self, storage, make_user):
        make_user("user_dave")
        assert collect_sitemap_content(storage).users == []


# =============================================================================
# Dry Run and Output
# =============================================================================

class TestDryRunMode:

    def test_dry_run_writes_nothing(self, content, temp_output_dir):
        result = make_pipeline(content, temp_output_dir, dry_run=True).run()

        assert result.dry_run
        assert result.files_written == []
        assert list(temp_output_dir.iterdir()) == []
        # 6 static pages + 2 vibes + 2 users + 1 tag
        assert result.entry_count == 11

    def test_live_run_writes_files(self, content, temp_output_dir):
        result = make_pipeline(content, temp_output_dir).run()

        names = sorted(p.name for p in temp_output_dir.iterdir())
        assert names == ["robots.txt", "sitemap.xml"]
        assert len(result.files_written) == 2

        sitemap = (temp_output_dir / "sitemap.xml").read_text(encoding="utf-8")
        assert f"<loc>{BASE_URL}/users/alice</loc>" in sitemap
        assert "%23cozy" in sitemap

    def test_skip_robots(self, content, temp_output_dir):
        make_pipeline(content, temp_output_dir, skip_robots=True).run()
        assert not (temp_output_dir / "robots.txt").exists()

    def test_creates_output_dir(self, content, tmp_path):
        target = tmp_path / "nested" / "public"
        make_pipeline(content, target).run()
        assert (target / "sitemap.xml").exists()

    def test_split_writes_index(self, content, temp_output_dir):
        result = make_pipeline(content, temp_output_dir, max_entries=5).run()

        names = sorted(p.name for p in temp_output_dir.iterdir())
        assert names == ["robots.txt", "sitemap-1.xml", "sitemap-2.xml", "sitemap-3.xml", "sitemap.xml"]
        index = (temp_output_dir / "sitemap.xml").read_text(encoding="utf-8")
        assert "<sitemapindex" in index
        assert f"{BASE_URL}/sitemap-3.xml" in index
        assert result.entry_count == 11

    def test_rerun_overwrites(self, content, temp_output_dir):
        make_pipeline(content, temp_output_dir).run()
        first = (temp_output_dir / "robots.txt").read_text(encoding="utf-8")

        make_pipeline(content, temp_output_dir).run()

        assert (temp_output_dir / "robots.txt").read_text(encoding="utf-8") == first


# =============================================================================
# Error Isolation
# =============================================================================

class TestErrorIsolation:

    def test_failed_collector_does_not_stop_others(self, content, temp_output_dir):
        failing = Mock(side_effect=RuntimeError("users table unavailable"))

        with patch.dict(COLLECTORS, {"users": failing}):
            result = make_pipeline(content, temp_output_dir, dry_run=True).run()

        by_name = {r.name: r for r in result.collection_results}
        assert by_name["vibes"].success
        assert not by_name["users"].success
        assert by_name["users"].error == "RuntimeError: users table unavailable"
        assert result.entry_count == 9
        assert result.errors == []

    def test_write_failure_recorded(self, content, temp_output_dir):
        pipeline = make_pipeline(content, temp_output_dir)

        with patch.object(SitemapPipeline, "_write_files", side_effect=OSError("disk full")):
            result = pipeline.run()

        assert result.errors == ["Pipeline error: disk full"]
        assert result.finished_at is not None


class TestRunPipelineFunction:

    def test_run_pipeline(self, content, temp_output_dir):
        result = run_pipeline(output_dir=str(temp_output_dir), base_url=BASE_URL, dry_run=True, storage=content)

        assert isinstance(result, PipelineResult)
        assert result.collections_succeeded == 3
