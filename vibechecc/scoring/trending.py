"""
Trending and rating scores for vibes.

Provides pure, side-effect-free functions to:
1. Average a vibe's ratings
2. Compute a trending score from recent engagement

All functions are deterministic given ``now`` and do not mutate input data.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from vibechecc.models import Rating, Reaction, Vibe
from vibechecc.utils.dates import utcnow


# =============================================================================
# Scoring Configuration
# =============================================================================

# Weight factors for trending components
WEIGHT_ENGAGEMENT: float = 0.30
WEIGHT_VELOCITY: float = 0.25
WEIGHT_QUALITY: float = 0.20
WEIGHT_DIVERSITY: float = 0.15
WEIGHT_TIME_DECAY: float = 0.05
WEIGHT_REVIEW_DEPTH: float = 0.03
WEIGHT_RECENCY_BONUS: float = 0.02

# Recent ratings count more than recent reactions
RECENT_RATING_WEIGHT: float = 1.2
RECENT_REACTION_WEIGHT: float = 1.0

# Engagement count at which the average rating counts in full
QUALITY_ENGAGEMENT_CAP: int = 15

# Distinct raters / emojis at which diversity saturates
RATER_DIVERSITY_CAP: int = 5
EMOJI_DIVERSITY_CAP: int = 8

# Vibes younger than this get an extra freshness bonus
RECENCY_BONUS_HOURS: float = 6.0

# Reviews longer than this count toward review depth
MIN_REVIEW_LENGTH: int = 10


# =============================================================================
# Result Data Structures
# =============================================================================

@dataclass
class TrendingResult:
    """
    Result of scoring a vibe for the trending feed.

    Attributes:
        score: Final trending score (unbounded, higher is hotter).
        engagement_score: Weighted count of ratings/reactions inside the window.
        velocity_score: sqrt(recent engagement per active hour) * 2.
        quality_score: Average rating scaled by engagement volume.
        diversity_score: Blend of distinct raters and distinct emojis (0 to 1).
        time_decay: exp(-age / (window * 1.5)).
        recency_bonus: Extra weight for vibes under six hours old.
        average_rating: Plain average of rating values.
        total_engagement: Ratings plus reactions.
        recent_engagement: Ratings plus reactions inside the window.
        age_hours: Vibe age at ``now``.
    """
    score: float
    engagement_score: float
    velocity_score: float
    quality_score: float
    diversity_score: float
    time_decay: float
    recency_bonus: float
    average_rating: float
    total_engagement: int
    recent_engagement: int
    age_hours: float


def compute_average_rating(ratings: Iterable[Rating]) -> float:
    """Average rating value, 0.0 when there are none."""
    values = [r.value for r in ratings]
    if not values:
        return 0.0
    return sum(values) / len(values)


def compute_trending_score(
    vibe: Vibe,
    ratings: List[Rating],
    reactions: Optional[List[Reaction]] = None,
    now: Optional[datetime] = None,
    time_window_hours: float = 24,
) -> TrendingResult:
    """
    Compute the trending score for a vibe.

    Formula:
        score = 0.30 * engagement + 0.25 * velocity + 0.20 * (0.8 * quality)
              + 0.15 * diversity + 0.05 * time_decay
              + 0.03 * (0.5 * review_depth) + 0.02 * recency_bonus

    Args:
        vibe: The vibe to score.
        ratings: All ratings on the vibe.
        reactions: All emoji reactions on the vibe.
        now: Current time (for testing). Defaults to utcnow().
        time_window_hours: Size of the "recent" window.

    Returns:
        TrendingResult with final score and component breakdown.
    """
    reactions = reactions or []
    now = now or utcnow()
    cutoff = now - timedelta(hours=time_window_hours)

    age_hours = max(0.0, (now - vibe.created_at).total_seconds() / 3600)

    recent_ratings = [r for r in ratings if r.created_at >= cutoff]
    recent_reactions = [r for r in reactions if r.created_at >= cutoff]
    recent_engagement = len(recent_ratings) + len(recent_reactions)
    total_engagement = len(ratings) + len(reactions)

    engagement_score = (
        len(recent_ratings) * RECENT_RATING_WEIGHT
        + len(recent_reactions) * RECENT_REACTION_WEIGHT
    )

    hours_active = max(0.5, age_hours)
    velocity_score = math.sqrt(recent_engagement / hours_active) * 2.0

    average_rating = compute_average_rating(ratings)
    quality_weight = min(total_engagement, QUALITY_ENGAGEMENT_CAP) / QUALITY_ENGAGEMENT_CAP
    quality_score = average_rating * quality_weight

    unique_users = {r.user_id for r in ratings} | {r.user_id for r in reactions}
    unique_emojis = {r.emoji for r in ratings if r.emoji} | {r.emoji for r in reactions if r.emoji}
    diversity_score = (
        min(len(unique_users) / RATER_DIVERSITY_CAP, 1.0) * 0.6
        + min(len(unique_emojis) / EMOJI_DIVERSITY_CAP, 1.0) * 0.4
    )

    reviews = [r.review for r in ratings if r.review and len(r.review) > MIN_REVIEW_LENGTH]
    average_review_length = sum(len(r) for r in reviews) / len(reviews) if reviews else 0.0
    review_depth = min(average_review_length / 100, 1.0)

    time_decay = math.exp(-age_hours / (time_window_hours * 1.5))
    recency_bonus = (
        math.exp(-(age_hours / 3)) * 0.5 if age_hours < RECENCY_BONUS_HOURS else 0.0
    )

    score = (
        WEIGHT_ENGAGEMENT * engagement_score
        + WEIGHT_VELOCITY * velocity_score
        + WEIGHT_QUALITY * quality_score * 0.8
        + WEIGHT_DIVERSITY * diversity_score
        + WEIGHT_TIME_DECAY * time_decay
        + WEIGHT_REVIEW_DEPTH * review_depth * 0.5
        + WEIGHT_RECENCY_BONUS * recency_bonus
    )

    return TrendingResult(
        score=score,
        engagement_score=engagement_score,
        velocity_score=velocity_score,
        quality_score=quality_score,
        diversity_score=diversity_score,
        time_decay=time_decay,
        recency_bonus=recency_bonus,
        average_rating=average_rating,
        total_engagement=total_engagement,
        recent_engagement=recent_engagement,
        age_hours=age_hours,
    )
