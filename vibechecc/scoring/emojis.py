"""
Emoji sentiment used to pick a default value for quick reactions.
"""

POSITIVE_EMOJIS = frozenset({
    "😍", "🥰", "😊", "😄", "😁", "😂", "🤣", "😎", "🤩", "🥳",
    "❤️", "💖", "💯", "🔥", "✨", "🙌", "👏", "👍", "🎉", "💪",
    "🌟", "⭐", "😇", "🤗", "😋",
})

NEGATIVE_EMOJIS = frozenset({
    "😡", "😠", "🤬", "😢", "😭", "😞", "😔", "😒", "🙄", "😤",
    "👎", "💩", "🤮", "🤢", "😩", "😫", "💔", "😬",
})

SENTIMENT_VALUES = {"positive": 4, "negative": 2, "neutral": 3}


def get_emoji_sentiment(emoji: str) -> str:
    """Return "positive", "negative" or "neutral"."""
    if emoji in POSITIVE_EMOJIS:
        return "positive"
    if emoji in NEGATIVE_EMOJIS:
        return "negative"
    return "neutral"


def default_rating_for_emoji(emoji: str) -> int:
    """Rating value used when a user reacts with an emoji and no score."""
    return SENTIMENT_VALUES[get_emoji_sentiment(emoji)]
