"""
Tests for recipient resolution and the mapping table.
"""

import json
import pytest
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from domain.errors import ConfigurationError
from domain.recipients import MappingTable, resolve, resolve_recipient


@pytest.fixture
def table():
    """Mapping with one rule of every kind."""
    return MappingTable({
        'a@b.com': ['d1@dest.com'],
        '@b.com': ['d2@dest.com'],
        'a': ['d3@dest.com'],
        '@': ['d4@dest.com'],
    })


class TestMappingTable:
    """Test building the mapping table."""

    def test_keys_are_lower_cased(self):
        """Test mixed-case keys match lower-case lookups."""
        table = MappingTable({'Info@Example.com': ['x@y.com']})
        assert 'info@example.com' in table
        assert table.get('info@example.com') == ('x@y.com',)

    def test_single_string_value(self):
        """Test a single address value becomes a one-element tuple."""
        table = MappingTable({'info': 'x@y.com'})
        assert table.get('info') == ('x@y.com',)

    def test_preserves_destination_order(self):
        """Test destination order follows the configuration."""
        table = MappingTable({'info': ['c@y.com', 'a@y.com', 'b@y.com']})
        assert table.get('info') == ('c@y.com', 'a@y.com', 'b@y.com')

    def test_duplicate_keys_after_lower_casing(self):
        """Test colliding keys are rejected."""
        with pytest.raises(ConfigurationError, match="Duplicate mapping key"):
            MappingTable({'Info': ['a@y.com'], 'info': ['b@y.com']})

    def test_invalid_value_type(self):
        """Test non-address values are rejected."""
        with pytest.raises(ConfigurationError, match="must be an address or a list"):
            MappingTable({'info': 42})

    def test_from_json(self):
        """Test building from a JSON object."""
        table = MappingTable.from_json(json.dumps({'@example.com': ['x@y.com']}))
        assert len(table) == 1
        assert list(table) == ['@example.com']

    def test_from_json_invalid(self):
        """Test invalid JSON is a configuration error."""
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            MappingTable.from_json("{not json")

    def test_from_json_not_object(self):
        """Test a JSON array is rejected."""
        with pytest.raises(ConfigurationError, match="must be a JSON object"):
            MappingTable.from_json('["a@b.com"]')


class TestResolveRecipient:
    """Test the four-level matching precedence."""

    def test_exact_match_wins(self, table):
        """Test full address rule has the highest precedence."""
        assert resolve_recipient('a@b.com', table) == ('d1@dest.com',)

    def test_domain_match(self, table):
        """Test domain rule applies to other mailboxes of the domain."""
        assert resolve_recipient('z@b.com', table) == ('d2@dest.com',)

    def test_domain_beats_user(self):
        """Test domain rule wins over user rule."""
        table = MappingTable({'@b.com': ['d2@dest.com'], 'a': ['d3@dest.com']})
        assert resolve_recipient('a@b.com', table) == ('d2@dest.com',)

    def test_user_match(self, table):
        """Test user rule applies on any domain."""
        assert resolve_recipient('a@other.com', table) == ('d3@dest.com',)

    def test_catch_all(self, table):
        """Test catch-all applies when nothing else matches."""
        assert resolve_recipient('nobody@nowhere.org', table) == ('d4@dest.com',)

    def test_no_match_without_catch_all(self):
        """Test no rule and no catch-all yields no destinations."""
        table = MappingTable({'a@b.com': ['d1@dest.com']})
        assert resolve_recipient('x@nowhere.org', table) == ()

    def test_case_insensitive(self, table):
        """Test matching ignores the recipient's case."""
        assert resolve_recipient('A@B.COM', table) == ('d1@dest.com',)

    def test_recipient_without_domain(self, table):
        """Test an address without at sign is matched as a user key."""
        assert resolve_recipient('a', table) == ('d3@dest.com',)

    def test_plus_sign_folding_enabled(self):
        """Test user+tag resolves like user when plus-sign support is on."""
        table = MappingTable({'user@d.com': ['x@dest.com']})
        assert resolve_recipient('user+tag@d.com', table, True) == \
            resolve_recipient('user@d.com', table, True)

    def test_plus_sign_folding_disabled(self):
        """Test user+tag resolves on its own when plus-sign support is off."""
        table = MappingTable({'user@d.com': ['x@dest.com'], 'user+tag@d.com': ['y@dest.com']})
        assert resolve_recipient('user+tag@d.com', table, False) == ('y@dest.com',)
        assert resolve_recipient('user@d.com', table, False) == ('x@dest.com',)


class TestResolve:
    """Test resolving all recipients of a message."""

    def test_keyed_by_original_recipient(self, table):
        """Test result keys are the original, unnormalized recipients."""
        result = resolve(['A@B.com', 'other@b.com'], table)
        assert result == {
            'A@B.com': ('d1@dest.com',),
            'other@b.com': ('d2@dest.com',),
        }

    def test_unmatched_recipients_are_left_out(self):
        """Test recipients without destinations never enter the result."""
        table = MappingTable({'a@b.com': ['d1@dest.com']})
        result = resolve(['a@b.com', 'x@nowhere.org'], table)
        assert list(result) == ['a@b.com']

    def test_no_targets(self):
        """Test a message with no matching recipient resolves to nothing."""
        table = MappingTable({'a@b.com': ['d1@dest.com']})
        assert resolve(['x@nowhere.org', 'y@nowhere.org'], table) == {}

    def test_empty_recipient_list(self, table):
        """Test no recipients resolves to nothing."""
        assert resolve([], table) == {}
