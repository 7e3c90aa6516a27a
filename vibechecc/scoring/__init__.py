"""
Scoring module.

Trending scores, rating averages and emoji sentiment.
"""

from vibechecc.scoring.trending import (
    TrendingResult,
    compute_average_rating,
    compute_trending_score,
)
from vibechecc.scoring.emojis import (
    get_emoji_sentiment,
    default_rating_for_emoji,
)

__all__ = [
    "TrendingResult",
    "compute_average_rating",
    "compute_trending_score",
    "get_emoji_sentiment",
    "default_rating_for_emoji",
]
