"""
SEO meta tags for pages: title, description, Open Graph, Twitter cards.

Tags are returned as small dicts ({"name": ..., "content": ...},
{"property": ..., "content": ...}, {"rel": ..., "href": ...} or
{"title": ...}) so any renderer can turn them into <meta>/<link> elements.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from vibechecc.config import SITE_NAME, SITE_TWITTER, SITE_URL
from vibechecc.utils.dates import parse_datetime

SITE_DESCRIPTION = (
    "Share and discover vibes. Rate, react, and share your favorite vibes with the world."
)
SITE_LOCALE = "en_US"

MAX_DESCRIPTION_LENGTH = 155

MetaTag = Dict[str, str]


@dataclass
class SEOConfig:
    """
    Everything needed to describe one page to crawlers and social cards.

    Attributes:
        type: "website", "article", "profile" or "video.other".
        author: Username of the author (used for twitter:creator).
        og_image_url: Generated social image; preferred over ``image``.
        twitter_card: "summary", "summary_large_image", "app" or "player".
    """
    title: str
    description: str
    keywords: List[str] = field(default_factory=list)
    image: Optional[str] = None
    image_alt: Optional[str] = None
    url: Optional[str] = None
    type: str = "website"
    author: Optional[str] = None
    published_time: Optional[str] = None
    modified_time: Optional[str] = None
    section: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    noindex: bool = False
    canonical: Optional[str] = None
    twitter_card: str = "summary_large_image"
    og_image_url: Optional[str] = None


def generate_seo_tags(config: SEOConfig, site_name: str = SITE_NAME) -> List[MetaTag]:
    """Build the full list of meta tags for a page."""
    tags: List[MetaTag] = [
        {"title": config.title},
        {"name": "description", "content": config.description},
    ]

    if config.keywords:
        tags.append({"name": "keywords", "content": ", ".join(config.keywords)})

    tags.extend([
        {"property": "og:title", "content": config.title},
        {"property": "og:description", "content": config.description},
        {"property": "og:type", "content": config.type or "website"},
        {"property": "og:site_name", "content": site_name},
        {"property": "og:locale", "content": SITE_LOCALE},
        {"name": "twitter:card", "content": config.twitter_card or "summary_large_image"},
        {"name": "twitter:title", "content": config.title},
        {"name": "twitter:description", "content": config.description},
        {"name": "twitter:site", "content": SITE_TWITTER},
        {"name": "twitter:creator", "content": f"@{config.author}" if config.author else SITE_TWITTER},
        {"name": "application-name", "content": site_name},
        {"name": "apple-mobile-web-app-title", "content": site_name},
        {"name": "format-detection", "content": "telephone=no"},
    ])

    if config.url:
        tags.append({"property": "og:url", "content": config.url})

    image_url = config.og_image_url or config.image
    if image_url:
        tags.append({"property": "og:image", "content": image_url})
        tags.append({"name": "twitter:image", "content": image_url})

        if config.og_image_url:
            tags.extend([
                {"property": "og:image:width", "content": "1200"},
                {"property": "og:image:height", "content": "630"},
                {"property": "og:image:type", "content": "image/png"},
            ])

        image_alt = config.image_alt or f"{config.title} - {site_name}"
        tags.append({"property": "og:image:alt", "content": image_alt})
        tags.append({"name": "twitter:image:alt", "content": image_alt})

    if config.type == "article":
        if config.author:
            tags.append({"property": "article:author", "content": config.author})
        if config.published_time:
            tags.append({"property": "article:published_time", "content": config.published_time})
        if config.modified_time:
            tags.append({"property": "article:modified_time", "content": config.modified_time})
        if config.section:
            tags.append({"property": "article:section", "content": config.section})
        for tag in config.tags:
            tags.append({"property": "article:tag", "content": tag})

    if config.canonical:
        tags.append({"rel": "canonical", "href": config.canonical})

    tags.append({
        "name": "robots",
        "content": "noindex, nofollow" if config.noindex else "index, follow",
    })

    return [t for t in tags if all(v is not None for v in t.values())]


def generate_page_title(title: str, include_suffix: bool = True, site_name: str = SITE_NAME) -> str:
    """Append " - <site>" unless the title already names the site."""
    if not include_suffix or site_name in title:
        return title
    return f"{title} - {site_name}"


def truncate_description(description: str, max_length: int = MAX_DESCRIPTION_LENGTH) -> str:
    if len(description) <= max_length:
        return description
    return f"{description[:max_length - 3].strip()}..."


def generate_canonical_url(path: str, base_url: str = SITE_URL) -> str:
    clean_path = path if path.startswith("/") else f"/{path}"
    return f"{base_url.rstrip('/')}{clean_path}"


def _iso(value) -> Optional[str]:
    if isinstance(value, datetime):
        return value.isoformat()
    parsed = parse_datetime(value)
    return parsed.isoformat() if parsed else None


def vibe_seo_config(vibe: dict, base_url: str = SITE_URL, site_name: str = SITE_NAME) -> SEOConfig:
    """
    SEO config for a vibe page.

    Args:
        vibe: Enriched vibe dict (see VibeService.enrich).
    """
    creator = vibe.get("created_by") or {}
    path = f"/vibes/{vibe['id']}"
    return SEOConfig(
        title=f"{vibe['title']} - {site_name}",
        description=truncate_description(vibe.get("description") or ""),
        keywords=list(vibe.get("tags") or []),
        image=vibe.get("image"),
        image_alt=f"Vibe: {vibe['title']}",
        url=generate_canonical_url(path, base_url),
        type="article",
        author=creator.get("username"),
        published_time=_iso(vibe.get("created_at")),
        modified_time=_iso(vibe.get("updated_at")),
        section="vibes",
        tags=list(vibe.get("tags") or []),
        canonical=generate_canonical_url(path, base_url),
    )


def profile_seo_config(user: dict, base_url: str = SITE_URL, site_name: str = SITE_NAME) -> SEOConfig:
    """SEO config for a user profile page."""
    username = user.get("username") or ""
    first, last = user.get("first_name"), user.get("last_name")
    display_name = f"{first} {last}" if first and last else username

    summary = f"View {display_name}'s vibes and ratings on {site_name}"
    description = f"{user['bio']} - {summary}" if user.get("bio") else summary
    path = f"/users/{username}"

    return SEOConfig(
        title=f"{display_name} (@{username}) - {site_name}",
        description=truncate_description(description),
        image=user.get("image_url"),
        type="profile",
        author=username or None,
        url=generate_canonical_url(path, base_url),
        canonical=generate_canonical_url(path, base_url),
    )


def search_seo_config(query: str, result_count: Optional[int] = None, site_name: str = SITE_NAME) -> SEOConfig:
    """Search result pages are never indexed."""
    if result_count is not None:
        description = f'{result_count} vibes found for "{query}". Discover and rate vibes on {site_name}'
    else:
        description = f'Search results for "{query}" on {site_name}'
    return SEOConfig(title=f'Search: "{query}" - {site_name}', description=description, noindex=True)


def tag_seo_config(tag: str, vibe_count: Optional[int] = None, site_name: str = SITE_NAME) -> SEOConfig:
    if vibe_count is not None:
        description = f"Discover {vibe_count} vibes tagged with #{tag}. Rate and share your favorite vibes."
    else:
        description = f"Discover vibes tagged with #{tag} on {site_name}"
    return SEOConfig(
        title=f"#{tag} - {site_name}",
        description=description,
        keywords=[tag, "vibes", "tag", "discover"],
    )
