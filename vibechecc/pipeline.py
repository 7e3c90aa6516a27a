"""
Sitemap pipeline - export sitemap(s) and robots.txt.

This module orchestrates the export:

    Storage → Collect (vibes, users, tags) → Render → Write → Summary

Steps:
1. Collect public vibes, users with a username and tags in use
2. Render sitemap.xml (or numbered sitemaps plus an index)
3. Render robots.txt
4. Write the files to the output directory (skipped on --dry-run)
5. Print execution summary

Design principles:
- Error isolation: a failed collection leaves the others in the sitemap
- Idempotency: files are overwritten, safe to run any number of times
- Dry-run support: render without writing (`--dry-run`)
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional
import traceback

from vibechecc.config import SITE_URL, SITEMAP_MAX_ENTRIES
from vibechecc.models import Tag, User, Vibe, VISIBILITY_PUBLIC
from vibechecc.seo.sitemap import SitemapOutput, generate_comprehensive_sitemap, generate_robots_txt
from vibechecc.storage import TAGS, USERS, VIBES, Storage, get_storage


# =============================================================================
# Pipeline Result Data Structures
# =============================================================================

@dataclass
class CollectionResult:
    """Result of reading one kind of content from storage."""
    name: str
    items_collected: int
    success: bool
    error: Optional[str] = None
    duration_ms: float = 0.0


@dataclass
class SitemapContent:
    """Everything that goes into the sitemap."""
    vibes: List[Vibe] = field(default_factory=list)
    users: List[User] = field(default_factory=list)
    tags: List[Tag] = field(default_factory=list)


@dataclass
class PipelineResult:
    """Complete result of a pipeline execution."""
    started_at: datetime
    finished_at: Optional[datetime] = None

    collection_results: List[CollectionResult] = field(default_factory=list)

    entry_count: int = 0
    files_written: List[str] = field(default_factory=list)
    dry_run: bool = False

    errors: List[str] = field(default_factory=list)

    @property
    def collections_succeeded(self) -> int:
        return sum(1 for r in self.collection_results if r.success)

    @property
    def collections_failed(self) -> int:
        return sum(1 for r in self.collection_results if not r.success)

    @property
    def duration_seconds(self) -> float:
        """Total pipeline duration in seconds."""
        if self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return 0.0

    def to_summary(self) -> str:
        """Generate a human-readable summary."""
        lines = [
            "=" * 60,
            "SITEMAP EXPORT SUMMARY",
            "=" * 60,
            f"Started:  {self.started_at.strftime('%Y-%m-%d %H:%M:%S')}",
            f"Duration: {self.duration_seconds:.2f}s",
            f"Mode:     {'DRY RUN' if self.dry_run else 'LIVE'}",
            "",
            "Content:",
        ]

        for cr in self.collection_results:
            status = "✓" if cr.success else "✗"
            lines.append(f"  {status} {cr.name}: {cr.items_collected} items ({cr.duration_ms:.0f}ms)")
            if cr.error:
                lines.append(f"      Error: {cr.error}")

        lines.extend([
            "",
            f"Sitemap entries: {self.entry_count}",
        ])

        if self.dry_run:
            lines.append("\nFiles: SKIPPED (dry-run mode)")
        elif self.files_written:
            lines.append("")
            lines.append("Files:")
            for path in self.files_written:
                lines.append(f"  {path}")

        if self.errors:
            lines.extend([
                "",
                "Errors:",
            ])
            for error in self.errors[:5]:
                lines.append(f"  - {error}")

        lines.append("=" * 60)
        return "\n".join(lines)


# =============================================================================
# Pipeline Configuration
# =============================================================================

@dataclass
class PipelineConfig:
    """
    Configuration for a sitemap export.

    CLI arguments override config file defaults.
    """
    output_dir: str = "public"
    base_url: str = SITE_URL
    max_entries: int = SITEMAP_MAX_ENTRIES
    dry_run: bool = False
    verbose: bool = False
    skip_robots: bool = False

    @classmethod
    def from_args(cls, args) -> "PipelineConfig":
        """Create config from argparse namespace."""
        return cls(
            output_dir=getattr(args, "output_dir", None) or "public",
            base_url=getattr(args, "base_url", None) or SITE_URL,
            max_entries=getattr(args, "max_entries", None) or SITEMAP_MAX_ENTRIES,
            dry_run=getattr(args, "dry_run", False),
            verbose=getattr(args, "verbose", False),
            skip_robots=getattr(args, "skip_robots", False),
        )


# =============================================================================
# Collection
# =============================================================================

def collect_vibes(storage: Storage) -> List[Vibe]:
    records = storage.list_records(VIBES, filters={"visibility": VISIBILITY_PUBLIC}, sort_field="created_at")
    return [Vibe.from_record(r) for r in records]


def collect_users(storage: Storage) -> List[User]:
    return [u for u in (User.from_record(r) for r in storage.list_records(USERS)) if u.username]


def collect_tags(storage: Storage) -> List[Tag]:
    return [t for t in (Tag.from_record(r) for r in storage.list_records(TAGS, sort_field="count")) if t.count > 0]


COLLECTORS: Dict[str, Callable[[Storage], list]] = {
    "vibes": collect_vibes,
    "users": collect_users,
    "tags": collect_tags,
}


def collect_sitemap_content(storage: Storage) -> SitemapContent:
    """Read everything the sitemap lists. Errors propagate."""
    return SitemapContent(
        vibes=collect_vibes(storage),
        users=collect_users(storage),
        tags=collect_tags(storage),
    )


# =============================================================================
# Pipeline Class
# =============================================================================

class SitemapPipeline:
    """
    Export pipeline for sitemap(s) and robots.txt.

    Usage:
        config = PipelineConfig(output_dir="public", dry_run=True)
        pipeline = SitemapPipeline(config)
        result = pipeline.run()
        print(result.to_summary())
    """

    def __init__(self, config: PipelineConfig = None, storage: Optional[Storage] = None):
        """
        Initialize the pipeline.

        Args:
            config: Pipeline configuration. Defaults to PipelineConfig().
            storage: Storage to read from. Defaults to get_storage().
        """
        self.config = config or PipelineConfig()
        self._storage = storage

    @property
    def storage(self) -> Storage:
        if self._storage is None:
            self._storage = get_storage()
        return self._storage

    def _collect(self, name: str, collector: Callable[[Storage], list]) -> tuple:
        """
        Run one collector with error isolation.

        Returns:
            Tuple of (items, CollectionResult).
        """
        start_time = datetime.now()
        try:
            items = collector(self.storage)
            duration_ms = (datetime.now() - start_time).total_seconds() * 1000
            return items, CollectionResult(
                name=name,
                items_collected=len(items),
                success=True,
                duration_ms=duration_ms,
            )
        except Exception as e:
            duration_ms = (datetime.now() - start_time).total_seconds() * 1000
            error_msg = f"{type(e).__name__}: {str(e)}"
            if self.config.verbose:
                error_msg += f"\n{traceback.format_exc()}"
            return [], CollectionResult(
                name=name,
                items_collected=0,
                success=False,
                error=error_msg,
                duration_ms=duration_ms,
            )

    def render(self, content: SitemapContent) -> SitemapOutput:
        return generate_comprehensive_sitemap(
            self.config.base_url,
            vibes=content.vibes,
            users=content.users,
            tags=content.tags,
            max_entries=self.config.max_entries,
        )

    def _write_files(self, output: SitemapOutput) -> List[str]:
        out_dir = Path(self.config.output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)

        files: Dict[str, str] = {}
        if output.needs_index:
            files["sitemap.xml"] = output.sitemap_index
            for i, sitemap in enumerate(output.sitemaps, start=1):
                files[f"sitemap-{i}.xml"] = sitemap
        else:
            files["sitemap.xml"] = output.sitemap

        if not self.config.skip_robots:
            files["robots.txt"] = generate_robots_txt(self.config.base_url)

        written = []
        for filename, text in files.items():
            path = out_dir / filename
            path.write_text(text, encoding="utf-8")
            written.append(str(path))
            if self.config.verbose:
                print(f"[sitemap] Wrote {path}")
        return written

    def run(self) -> PipelineResult:
        """
        Execute the export.

        Returns:
            PipelineResult with execution details.
        """
        result = PipelineResult(started_at=datetime.now(), dry_run=self.config.dry_run)

        try:
            content = SitemapContent()
            for name, collector in COLLECTORS.items():
                if self.config.verbose:
                    print(f"[{name}] Collecting from {self.storage.name}...")
                items, collection = self._collect(name, collector)
                setattr(content, name, items)
                result.collection_results.append(collection)

            output = self.render(content)
            result.entry_count = output.entry_count

            if not self.config.dry_run:
                result.files_written = self._write_files(output)

        except Exception as e:
            result.errors.append(f"Pipeline error: {str(e)}")
            if self.config.verbose:
                result.errors.append(traceback.format_exc())

        result.finished_at = datetime.now()
        return result


# =============================================================================
# Convenience Functions
# =============================================================================

def run_pipeline(
    output_dir: str = "public",
    base_url: str = None,
    dry_run: bool = False,
    verbose: bool = False,
    storage: Optional[Storage] = None,
) -> PipelineResult:
    """Run the export with the given options."""
    config = PipelineConfig(
        output_dir=output_dir,
        base_url=base_url or SITE_URL,
        dry_run=dry_run,
        verbose=verbose,
    )
    return SitemapPipeline(config, storage=storage).run()
