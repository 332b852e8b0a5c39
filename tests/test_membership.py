"""Tests for membership.py - per-user namespace naming."""

import pytest

import membership


class TestCompute:
    """Test member roster computation."""

    def test_zero_users_is_empty(self):
        assert membership.compute(0, 'cloudnative-app-') == []

    def test_ascending_user_ids(self):
        assert membership.compute(3, 'cloudnative-app-') == [
            'cloudnative-app-1',
            'cloudnative-app-2',
            'cloudnative-app-3',
        ]

    def test_names_are_unique(self):
        names = membership.compute(25, 'staging-')
        assert len(names) == 25
        assert len(set(names)) == 25

    def test_deterministic(self):
        """Same inputs always give the same list."""
        assert membership.compute(5, 'p-') == membership.compute(5, 'p-')

    def test_negative_count_rejected(self):
        with pytest.raises(ValueError, match='>= 0'):
            membership.compute(-1, 'p-')


class TestUsernames:
    def test_user_prefix(self):
        assert membership.usernames(2) == ['user1', 'user2']
