"""
Tests for forwarded-item identification.
"""

import pytest

from subinbox.forwarding import (
    alias_for_item,
    group_items_by_alias,
    identify_forwarded,
    identify_forwarded_by_account,
    is_alias_of,
    is_item_forwarded,
)


class TestIsAliasOf:
    """Test the base-account pattern check."""

    @pytest.mark.parametrize('address, base, expected', [
        ('userXYZ@2925.com', 'user@2925.com', True),
        ('USERxyz@2925.COM', 'user@2925.com', True),
        ('user@2925.com', 'user@2925.com', False),
        ('userXYZ@other.com', 'user@2925.com', False),
        ('otherABC@2925.com', 'user@2925.com', False),
        ('use@2925.com', 'user@2925.com', False),
    ])
    def test_pattern(self, address, base, expected):
        assert is_alias_of(address, base) is expected

    @pytest.mark.parametrize('address, base', [
        ('no-at-sign', 'user@2925.com'),
        ('@2925.com', 'user@2925.com'),
        ('userXYZ@2925.com', 'broken'),
        ('a@b@c', 'user@2925.com'),
        (None, 'user@2925.com'),
        ('', ''),
    ])
    def test_malformed_input_never_raises(self, address, base):
        assert is_alias_of(address, base) is False


class TestIdentifyForwarded:
    """Test classification against an alias list."""

    def test_case_insensitive_match(self, make_item, make_alias):
        items = [make_item('1', recipient='USERABC@2925.COM')]
        result = identify_forwarded(items, [make_alias('userABC@2925.com')])

        assert result[0].forwarded is True
        assert result[0].original_alias == 'USERABC@2925.COM'

    def test_other_account_not_forwarded(self, make_item, make_alias):
        items = [make_item('1', recipient='otherABC@2925.com')]
        result = identify_forwarded(items, [make_alias('userABC@2925.com')])

        assert result[0].forwarded is False
        assert result[0].original_alias is None

    def test_stale_flags_are_reset(self, make_item):
        from dataclasses import replace
        item = replace(make_item('1'), forwarded=True, original_alias='gone@2925.com')

        result = identify_forwarded([item], [])

        assert result[0].forwarded is False
        assert result[0].original_alias is None

    def test_account_pattern_mode(self, make_item):
        items = [make_item('1', recipient='userXYZ@2925.com'), make_item('2', recipient='user@2925.com')]

        result = identify_forwarded_by_account(items, 'user@2925.com')

        assert [item.forwarded for item in result] == [True, False]

    def test_account_pattern_without_account(self, make_item):
        result = identify_forwarded_by_account([make_item('1', recipient='userXYZ@2925.com')], None)
        assert result[0].forwarded is False


class TestAliasLookup:
    """Test per-item lookups and grouping."""

    def test_alias_for_item(self, make_item, make_alias):
        alias = make_alias('userXYZ@2925.com')
        item = make_item('1', recipient='userxyz@2925.com')

        assert alias_for_item(item, [alias]) == alias
        assert is_item_forwarded(item, [alias]) is True
        assert alias_for_item(make_item('2'), [alias]) is None

    def test_group_items_by_alias(self, make_item, make_alias):
        aliases = [make_alias('userA@2925.com'), make_alias('userB@2925.com')]
        items = [
            make_item('1', recipient='userA@2925.com'),
            make_item('2', recipient='user@2925.com'),
            make_item('3', recipient='usera@2925.com'),
        ]

        grouped = group_items_by_alias(items, aliases)

        assert [item.id for item in grouped['userA@2925.com']] == ['1', '3']
        assert grouped['userB@2925.com'] == []
        assert set(grouped) == {'userA@2925.com', 'userB@2925.com'}
