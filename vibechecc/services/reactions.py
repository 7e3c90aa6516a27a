"""
Lightweight emoji reactions on vibes.
"""

from typing import List, Optional

from vibechecc.errors import ValidationError
from vibechecc.models import Reaction
from vibechecc.storage import REACTIONS
from vibechecc.validation import validate_emoji


class ReactionService:
    """At most one reaction per user, vibe and emoji. Reacting again removes it."""

    def __init__(self, backend):
        self.backend = backend
        self.storage = backend.storage

    def react(self, user_id: str, vibe_id: str, emoji: str) -> dict:
        """
        Toggle a reaction.

        Returns:
            {"added": True} when the reaction was added, False when removed.
        """
        emoji = validate_emoji(emoji)
        vibe = self.backend.vibes.require_vibe(vibe_id)
        if vibe.is_deleted:
            raise ValidationError("Cannot react to a deleted vibe")

        reaction = Reaction(vibe_id=vibe_id, user_id=user_id, emoji=emoji)
        reaction_id, created = self.storage.insert_unique(
            REACTIONS, {"vibe_id": vibe_id, "user_id": user_id, "emoji": emoji}, reaction.to_record()
        )
        if not created:
            self.storage.delete(REACTIONS, reaction_id)
        return {"added": created}

    def get_reaction_counts(self, vibe_id: str, viewer_id: Optional[str] = None) -> List[dict]:
        """Emoji tallies for a vibe, most used first."""
        tallies = {}
        for record in self.storage.list_records(REACTIONS, filters={"vibe_id": vibe_id}):
            entry = tallies.setdefault(
                record["emoji"], {"emoji": record["emoji"], "count": 0, "reacted_by_viewer": False}
            )
            entry["count"] += 1
            if viewer_id and record.get("user_id") == viewer_id:
                entry["reacted_by_viewer"] = True

        return sorted(tallies.values(), key=lambda e: -e["count"])
