"""
Unit tests for small pure helpers shared across services:
rating averages, friendship relations and LIKE escaping.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from backend.musicbox.models.friendship import Friendship, FriendshipStatus
from backend.musicbox.services import friend_service
from backend.musicbox.services.song_service import round_average


@pytest.mark.parametrize("value, expected", [
    (3.25, Decimal("3.3")),
    (4.05, Decimal("4.1")),
    (Decimal("2.349"), Decimal("2.3")),
    (5, Decimal("5.0")),
])
def test_round_average_rounds_half_up(value, expected):
    assert round_average(value) == expected


def test_round_average_of_nothing_is_none():
    assert round_average(None) is None


@pytest.mark.parametrize("status, sender, expected", [
    (FriendshipStatus.ACCEPTED.value, 1, "friend"),
    (FriendshipStatus.ACCEPTED.value, 2, "friend"),
    (FriendshipStatus.PENDING.value, 1, "request_sent"),
    (FriendshipStatus.PENDING.value, 2, "request_received"),
    (FriendshipStatus.REJECTED.value, 1, "none"),
])
def test_relation_is_seen_from_the_caller(status, sender, expected):
    row = Friendship(user_id=sender, friend_id=3 - sender, status=status)

    assert friend_service._relation(row, user_id=1) == expected


def test_no_row_means_no_relation():
    assert friend_service._relation(None, user_id=1) == "none"


def test_like_wildcards_are_escaped():
    assert friend_service._escape_like("50%_off\\") == "50\\%\\_off\\\\"
