"""
Tests for the follow graph, its counters and follow suggestions.
"""

import threading
import time
from unittest.mock import patch

import pytest

from vibechecc.errors import ConflictError, NotFoundError, ValidationError
from vibechecc.storage import FOLLOWS, NOTIFICATIONS

from tests.test_config import MESSAGES


class TestFollow:

    def test_follow_updates_counters(self, backend, storage, alice, bob):
        follow_id = backend.follows.follow("user_alice", "user_bob")

        assert storage.get(FOLLOWS, follow_id)["following_id"] == "user_bob"
        assert backend.follows.get_follow_stats("user_alice") == {"followers": 0, "following": 1}
        assert backend.follows.get_follow_stats("user_bob") == {"followers": 1, "following": 0}

    def test_follow_notifies_target(self, backend, storage, alice, bob):
        backend.follows.follow("user_alice", "user_bob")

        notes = storage.list_records(NOTIFICATIONS, filters={"user_id": "user_bob"})
        assert len(notes) == 1
        assert notes[0]["type"] == "follow"
        assert notes[0]["target_id"] == "user_alice"
        assert notes[0]["title"] == "alice followed you"

    def test_self_follow(self, backend, alice):
        with pytest.raises(ValidationError, match=MESSAGES["errors"]["self_follow"]):
            backend.follows.follow("user_alice", "user_alice")

    def test_duplicate_follow(self, backend, alice, bob):
        backend.follows.follow("user_alice", "user_bob")
        with pytest.raises(ConflictError, match=MESSAGES["errors"]["already_following"]):
            backend.follows.follow("user_alice", "user_bob")

    def test_unknown_target(self, backend, alice):
        with pytest.raises(NotFoundError, match="User to follow not found"):
            backend.follows.follow("user_alice", "user_ghost")

    def test_captures_analytics(self, backend, analytics, alice, bob):
        backend.follows.follow("user_alice", "user_bob")
        analytics.capture.assert_called_with("user_alice", "user_followed", {"following_id": "user_bob"})


class TestUnfollow:

    def test_unfollow(self, backend, alice, bob):
        backend.follows.follow("user_alice", "user_bob")

        assert backend.follows.unfollow("user_alice", "user_bob") == {"success": True}
        assert not backend.follows.is_following("user_alice", "user_bob")
        assert backend.follows.get_follow_stats("user_bob") == {"followers": 0, "following": 0}

    def test_unfollow_when_not_following(self, backend, alice, bob):
        with pytest.raises(ValidationError, match=MESSAGES["errors"]["not_following"]):
            backend.follows.unfollow("user_alice", "user_bob")

    def test_counters_never_negative(self, backend, storage, alice, bob):
        """An edge without matching counters must not push them below zero."""
        storage.insert(FOLLOWS, {"follower_id": "user_alice", "following_id": "user_bob"})

        backend.follows.unfollow("user_alice", "user_bob")

        assert backend.follows.get_follow_stats("user_alice") == {"followers": 0, "following": 0}
        assert backend.follows.get_follow_stats("user_bob") == {"followers": 0, "following": 0}


class TestFollowQueries:

    def test_is_following(self, backend, alice, bob):
        backend.follows.follow("user_alice", "user_bob")

        assert backend.follows.is_following("user_alice", "user_bob")
        assert not backend.follows.is_following("user_bob", "user_alice")
        assert not backend.follows.is_following(None, "user_bob")

    def test_followers_and_following_pages(self, backend, alice, bob, carol):
        backend.follows.follow("user_bob", "user_alice")
        backend.follows.follow("user_carol", "user_alice")

        followers = backend.follows.get_followers("user_alice", limit=1)
        assert len(followers["items"]) == 1
        assert followers["is_done"] is False

        rest = backend.follows.get_followers("user_alice", limit=1, cursor=followers["continue_cursor"])
        names = {followers["items"][0]["user"]["username"], rest["items"][0]["user"]["username"]}
        assert names == {"bob", "carol"}

        following = backend.follows.get_following("user_bob")
        assert [f["user"]["username"] for f in following["items"]] == ["alice"]

    def test_stats_for_unknown_user(self, backend):
        assert backend.follows.get_follow_stats("user_ghost") == {"followers": 0, "following": 0}

    def test_mutual_follows(self, backend, make_user, alice, bob, carol):
        make_user("user_dave", username="dave")
        backend.follows.follow("user_alice", "user_carol")
        backend.follows.follow("user_alice", "user_dave")
        backend.follows.follow("user_bob", "user_carol")

        mutual = backend.follows.get_mutual_follows("user_alice", "user_bob")

        assert mutual["total_count"] == 1
        assert mutual["mutual_follows"][0]["username"] == "carol"


class TestSuggestedFollows:

    def test_friends_of_friends_first(self, backend, make_user, alice, bob, carol):
        """
        GIVEN: Alice follows Bob and Carol, who both follow Dave
        WHEN: Suggestions are requested for Alice
        THEN: Dave is suggested with two mutual connections
        """
        make_user("user_dave", username="dave")
        backend.follows.follow("user_alice", "user_bob")
        backend.follows.follow("user_alice", "user_carol")
        backend.follows.follow("user_bob", "user_dave")
        backend.follows.follow("user_carol", "user_dave")

        suggestions = backend.follows.get_suggested_follows("user_alice", limit=1)

        assert suggestions == [{"user": suggestions[0]["user"], "mutual_connections": 2}]
        assert suggestions[0]["user"]["username"] == "dave"

    def test_excludes_self_and_already_followed(self, backend, alice, bob):
        backend.follows.follow("user_alice", "user_bob")
        backend.follows.follow("user_bob", "user_alice")

        suggestions = backend.follows.get_suggested_follows("user_alice")

        ids = {s["user"]["external_id"] for s in suggestions}
        assert "user_alice" not in ids
        assert "user_bob" not in ids

    def test_fills_with_popular_creators(self, backend, alice, bob, carol, insert_vibe, insert_rating):
        vibe_id = insert_vibe("user_carol", "popular")
        insert_rating(vibe_id, "user_bob", value=5)

        suggestions = backend.follows.get_suggested_follows("user_alice")

        assert suggestions[0]["user"]["username"] == "carol"
        assert suggestions[0]["mutual_connections"] == 0
        assert suggestions[0]["engagement_stats"] == {
            "total_ratings": 1, "average_rating": 5.0, "vibe_count": 1
        }

    def test_anonymous(self, backend):
        assert backend.follows.get_suggested_follows(None) == []


class TestConcurrentFollow:

    def test_simultaneous_follows_leave_one_edge(self, backend, storage, alice, bob):
        """
        GIVEN: Two requests following the same user at the same moment
        WHEN: Lookups are slow enough for both to pass the duplicate check
        THEN: One edge is stored, the other caller gets a conflict and counters match
        """
        errors = []
        original = storage.find_one

        def slow_find_one(*args, **kwargs):
            time.sleep(0.05)
            return original(*args, **kwargs)

        def follow():
            try:
                backend.follows.follow("user_alice", "user_bob")
            except ConflictError as e:
                errors.append(e)

        with patch.object(storage, "find_one", side_effect=slow_find_one):
            threads = [threading.Thread(target=follow) for _ in range(2)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        assert storage.count(FOLLOWS) == 1
        assert len(errors) == 1
        assert backend.follows.get_follow_stats("user_bob") == {"followers": 1, "following": 0}
        assert backend.follows.get_follow_stats("user_alice") == {"followers": 0, "following": 1}

    def test_many_followers_counted(self, backend, make_user, bob):
        followers = [f"user_{i}" for i in range(6)]
        for external_id in followers:
            make_user(external_id, username=external_id.replace("_", ""))

        threads = [
            threading.Thread(target=backend.follows.follow, args=(external_id, "user_bob"))
            for external_id in followers
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert backend.follows.get_follow_stats("user_bob")["followers"] == 6
