"""
XML sitemap and robots.txt generation.

Builds sitemap entries for static pages, public vibes, user profiles and
tags, renders them as sitemaps.org XML, and splits into multiple files
with an index when there are more entries than one sitemap may hold.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional
from urllib.parse import quote

from vibechecc.models import Tag, User, Vibe
from vibechecc.utils.dates import utcnow

# Google's per-file limit
MAX_ENTRIES_PER_SITEMAP = 50000

SITEMAP_NAMESPACE = "http://www.sitemaps.org/schemas/sitemap/0.9"
XHTML_NAMESPACE = "http://www.w3.org/1999/xhtml"

# (path, priority, changefreq)
STATIC_PAGES = [
    ("/", 1.0, "daily"),
    ("/discover", 0.9, "daily"),
    ("/search", 0.8, "weekly"),
    ("/privacy", 0.3, "monthly"),
    ("/terms", 0.3, "monthly"),
    ("/data", 0.3, "monthly"),
]

DEFAULT_EXCLUDES = ["/api/", "/admin/", "/_next/", "/static/", "/search?"]

BASE_PRIORITIES = {"static": 0.8, "vibe": 0.7, "user": 0.6, "tag": 0.5}


@dataclass
class SitemapEntry:
    """
    One <url> element.

    Attributes:
        alternate_urls: (hreflang, href) pairs for localized versions.
    """
    url: str
    lastmod: Optional[str] = None
    changefreq: Optional[str] = None
    priority: Optional[float] = None
    alternate_urls: List[tuple] = field(default_factory=list)


@dataclass
class SitemapOutput:
    """
    Rendered sitemap(s).

    Either ``sitemap`` is set, or ``sitemaps`` and ``sitemap_index`` are
    (``needs_index`` tells which).
    """
    sitemap: Optional[str] = None
    sitemaps: List[str] = field(default_factory=list)
    sitemap_index: Optional[str] = None
    needs_index: bool = False
    entry_count: int = 0


def escape_xml(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#39;")
    )


def _iso(value: Optional[datetime]) -> str:
    return (value or utcnow()).isoformat()


# =============================================================================
# Rendering
# =============================================================================

def generate_sitemap_entry(entry: SitemapEntry) -> str:
    xml = "  <url>\n"
    xml += f"    <loc>{escape_xml(entry.url)}</loc>\n"
    if entry.lastmod:
        xml += f"    <lastmod>{entry.lastmod}</lastmod>\n"
    if entry.changefreq:
        xml += f"    <changefreq>{entry.changefreq}</changefreq>\n"
    if entry.priority is not None and 0 <= entry.priority <= 1:
        xml += f"    <priority>{entry.priority:.1f}</priority>\n"
    for hreflang, href in entry.alternate_urls:
        xml += (
            f'    <xhtml:link rel="alternate" hreflang="{escape_xml(hreflang)}" '
            f'href="{escape_xml(href)}" />\n'
        )
    xml += "  </url>\n"
    return xml


def generate_sitemap(entries: List[SitemapEntry], max_entries: int = MAX_ENTRIES_PER_SITEMAP) -> str:
    """Render a <urlset>. Entries beyond ``max_entries`` are dropped."""
    limited = entries[:max_entries]

    xml = '<?xml version="1.0" encoding="UTF-8"?>\n'
    xml += f'<urlset xmlns="{SITEMAP_NAMESPACE}"'
    if any(e.alternate_urls for e in limited):
        xml += f' xmlns:xhtml="{XHTML_NAMESPACE}"'
    xml += ">\n"

    for entry in limited:
        xml += generate_sitemap_entry(entry)

    xml += "</urlset>\n"
    return xml


def generate_sitemap_index(sitemaps: List[tuple]) -> str:
    """
    Render a <sitemapindex>.

    Args:
        sitemaps: (url, lastmod or None) pairs.
    """
    xml = '<?xml version="1.0" encoding="UTF-8"?>\n'
    xml += f'<sitemapindex xmlns="{SITEMAP_NAMESPACE}">\n'
    for url, lastmod in sitemaps:
        xml += "  <sitemap>\n"
        xml += f"    <loc>{escape_xml(url)}</loc>\n"
        if lastmod:
            xml += f"    <lastmod>{lastmod}</lastmod>\n"
        xml += "  </sitemap>\n"
    xml += "</sitemapindex>\n"
    return xml


# =============================================================================
# Entries
# =============================================================================

def generate_static_page_entries(base_url: str) -> List[SitemapEntry]:
    now = utcnow().isoformat()
    return [
        SitemapEntry(url=f"{base_url}{path}", lastmod=now, changefreq=changefreq, priority=priority)
        for path, priority, changefreq in STATIC_PAGES
    ]


def generate_vibe_entries(vibes: Iterable[Vibe], base_url: str) -> List[SitemapEntry]:
    """Deleted vibes are never listed."""
    return [
        SitemapEntry(
            url=f"{base_url}/vibes/{vibe.id}",
            lastmod=_iso(vibe.updated_at or vibe.created_at),
            changefreq="weekly",
            priority=0.8,
        )
        for vibe in vibes
        if not vibe.is_deleted
    ]


def generate_user_entries(users: Iterable[User], base_url: str) -> List[SitemapEntry]:
    """Only users with a username have a public profile URL."""
    return [
        SitemapEntry(
            url=f"{base_url}/users/{quote(user.username)}",
            lastmod=_iso(user.updated_at or user.created_at),
            changefreq="monthly",
            priority=0.6,
        )
        for user in users
        if user.username
    ]


def tag_priority(count: int) -> float:
    return min(0.7, 0.3 + (count / 100) * 0.4)


def generate_tag_entries(tags: Iterable[Tag], base_url: str) -> List[SitemapEntry]:
    """Tags with no vibes are skipped. Each links to a tag search."""
    return [
        SitemapEntry(
            url=f"{base_url}/search?q={quote('#' + tag.name, safe='')}",
            lastmod=_iso(tag.last_used),
            changefreq="weekly",
            priority=tag_priority(tag.count),
        )
        for tag in tags
        if tag.count > 0
    ]


def split_sitemap(entries: List[SitemapEntry], max_entries: int = MAX_ENTRIES_PER_SITEMAP) -> List[List[SitemapEntry]]:
    return [entries[i:i + max_entries] for i in range(0, len(entries), max_entries)]


def generate_comprehensive_sitemap(
    base_url: str,
    vibes: Iterable[Vibe] = (),
    users: Iterable[User] = (),
    tags: Iterable[Tag] = (),
    max_entries: int = MAX_ENTRIES_PER_SITEMAP,
) -> SitemapOutput:
    """
    Build the site's sitemap from all content.

    Entries are ordered by priority (highest first) then URL. When there
    are more than ``max_entries`` entries the output is split into
    numbered sitemaps ("/sitemap-1.xml", ...) plus an index.
    """
    base_url = base_url.rstrip("/")

    entries = generate_static_page_entries(base_url)
    entries += generate_vibe_entries(vibes, base_url)
    entries += generate_user_entries(users, base_url)
    entries += generate_tag_entries(tags, base_url)

    entries.sort(key=lambda e: (-(e.priority or 0), e.url))

    if len(entries) <= max_entries:
        return SitemapOutput(sitemap=generate_sitemap(entries, max_entries), entry_count=len(entries))

    chunks = split_sitemap(entries, max_entries)
    now = utcnow().isoformat()
    index = generate_sitemap_index(
        [(f"{base_url}/sitemap-{i + 1}.xml", now) for i in range(len(chunks))]
    )
    return SitemapOutput(
        sitemaps=[generate_sitemap(chunk, max_entries) for chunk in chunks],
        sitemap_index=index,
        needs_index=True,
        entry_count=len(entries),
    )


def generate_robots_txt(base_url: str) -> str:
    base_url = base_url.rstrip("/")
    robots = "User-agent: *\n"
    robots += "Allow: /\n\n"
    robots += "# Disallow API routes and admin pages\n"
    robots += "Disallow: /api/\n"
    robots += "Disallow: /admin/\n"
    robots += "Disallow: /_next/\n"
    robots += "Disallow: /static/\n\n"
    robots += "# Disallow parameterized search pages\n"
    robots += "Disallow: /search?*\n\n"
    robots += "# Sitemaps\n"
    robots += f"Sitemap: {base_url}/sitemap.xml\n"
    return robots


def should_include_in_sitemap(url: str, exclude_patterns: Optional[List[str]] = None) -> bool:
    patterns = DEFAULT_EXCLUDES + list(exclude_patterns or [])
    return not any(pattern in url for pattern in patterns)


def calculate_priority(
    type: str,
    engagement_score: float = 0,
    recency: float = 0,
    popularity: float = 0,
) -> float:
    """
    Priority for a URL from its content type and metrics.

    Each metric adds up to 0.2 on top of the type's base priority; the
    result is clamped to [0.1, 1.0].
    """
    priority = BASE_PRIORITIES[type]
    priority += min(0.2, (engagement_score / 5) * 0.2)
    priority += min(0.2, recency * 0.2)
    priority += min(0.2, (popularity / 10) * 0.2)
    return max(0.1, min(1.0, priority))
