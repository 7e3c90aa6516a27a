"""
Tag usage counts.
"""

from typing import Iterable, List, Optional

from vibechecc.models import Tag, normalize_tag
from vibechecc.storage import TAGS, VIBES
from vibechecc.utils import clamp_limit, utcnow


class TagService:
    """Keeps one counter per tag name in step with public vibes."""

    def __init__(self, backend):
        self.backend = backend
        self.storage = backend.storage

    def get(self, name: str) -> Optional[Tag]:
        record = self.storage.find_one(TAGS, {"name": normalize_tag(name)})
        return Tag.from_record(record) if record else None

    def update_tag_counts(
        self,
        tags_to_add: Optional[Iterable[str]] = None,
        tags_to_remove: Optional[Iterable[str]] = None,
    ) -> None:
        """
        Increment counts for added tags and decrement for removed ones.

        Tags are created on first use and deleted when their count would
        drop to zero.
        """
        now = utcnow().isoformat()

        for name in tags_to_add or []:
            name = normalize_tag(name)
            if not name:
                continue
            tag_id, created = self.storage.insert_unique(
                TAGS, {"name": name}, Tag(name=name, count=1).to_record()
            )
            if not created:
                self.storage.increment(TAGS, tag_id, "count", 1)
                self.storage.update(TAGS, tag_id, {"last_used": now})

        for name in tags_to_remove or []:
            name = normalize_tag(name)
            if not name:
                continue
            tag = self.get(name)
            if tag is None:
                continue
            if self.storage.increment(TAGS, tag.id, "count", -1) == 0:
                self.storage.delete(TAGS, tag.id)

    def get_popular_tags(self, limit: int = 20) -> List[dict]:
        limit = clamp_limit(limit)
        records = self.storage.list_records(TAGS, sort_field="count", descending=True, limit=limit)
        return [{"name": r["name"], "count": r.get("count", 0)} for r in records]

    def search_tags(self, query: str, limit: int = 10) -> List[dict]:
        """Tags containing the query, prefix matches first, then by count."""
        query = normalize_tag(query)
        if not query:
            return []
        limit = clamp_limit(limit, default=10)

        matches = [
            Tag.from_record(r)
            for r in self.storage.list_records(TAGS)
            if query in r.get("name", "")
        ]
        matches.sort(key=lambda t: (not t.name.startswith(query), -t.count, t.name))
        return [{"name": t.name, "count": t.count} for t in matches[:limit]]

    def list_tags(self) -> List[Tag]:
        records = self.storage.list_records(TAGS, sort_field="count", descending=True)
        return [Tag.from_record(r) for r in records]

    def rebuild_tag_counts(self) -> dict:
        """
        Recount every tag from public vibes, replacing existing counters.

        Returns:
            {"tags_rebuilt": int, "vibes_processed": int}
        """
        for record in self.storage.list_records(TAGS):
            self.storage.delete(TAGS, record["_id"])

        vibes = self.storage.list_records(VIBES, filters={"visibility": "public"})
        counts = {}
        for vibe in vibes:
            for name in vibe.get("tags") or []:
                name = normalize_tag(name)
                if name:
                    counts[name] = counts.get(name, 0) + 1

        for name, count in counts.items():
            self.storage.insert(TAGS, Tag(name=name, count=count).to_record())

        print(f"[tags] Rebuilt {len(counts)} tags from {len(vibes)} vibes")
        return {"tags_rebuilt": len(counts), "vibes_processed": len(vibes)}
