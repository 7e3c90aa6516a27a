"""
SEO module.

Meta tags for pages, XML sitemaps and robots.txt.
"""

from vibechecc.seo.meta import (
    SEOConfig,
    generate_seo_tags,
    generate_page_title,
    truncate_description,
    generate_canonical_url,
    vibe_seo_config,
    profile_seo_config,
    search_seo_config,
    tag_seo_config,
)
from vibechecc.seo.sitemap import (
    SitemapEntry,
    SitemapOutput,
    escape_xml,
    generate_sitemap,
    generate_sitemap_index,
    split_sitemap,
    generate_comprehensive_sitemap,
    generate_robots_txt,
    should_include_in_sitemap,
    calculate_priority,
)

__all__ = [
    "SEOConfig",
    "generate_seo_tags",
    "generate_page_title",
    "truncate_description",
    "generate_canonical_url",
    "vibe_seo_config",
    "profile_seo_config",
    "search_seo_config",
    "tag_seo_config",
    "SitemapEntry",
    "SitemapOutput",
    "escape_xml",
    "generate_sitemap",
    "generate_sitemap_index",
    "split_sitemap",
    "generate_comprehensive_sitemap",
    "generate_robots_txt",
    "should_include_in_sitemap",
    "calculate_priority",
]
