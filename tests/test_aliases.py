"""
Tests for the alias registry and alias creation.
"""

import asyncio

import pytest

from subinbox.aliases import CREATION_BODY, CREATION_SUBJECT, AliasCreator, AliasRegistry
from subinbox.exceptions import (
    DuplicateEntryError,
    InvalidTransitionError,
    NotAuthenticatedError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from subinbox.models import AliasStatus
from subinbox.utils import SuffixOptions


def run(coro):
    return asyncio.run(coro)


class TestAliasRegistry:
    """Test add/update/delete and persistence ordering."""

    def test_add_persists_and_exposes(self, port, make_alias):
        registry = AliasRegistry(port)
        alias = make_alias('userA@2925.com')

        run(registry.add(alias))

        assert registry.items == (alias,)
        assert port.stored_aliases == [alias]
        assert registry.get('userA@2925.com') == alias

    def test_duplicate_leaves_registry_unchanged(self, port, make_alias):
        registry = AliasRegistry(port)
        run(registry.add(make_alias('userA@2925.com')))
        before = registry.snapshot()

        with pytest.raises(DuplicateEntryError):
            run(registry.add(make_alias('userA@2925.com', created_at=5)))

        assert registry.snapshot() == before
        assert port.calls.count('persist_alias_list') == 1

    def test_persist_failure_leaves_memory_untouched(self, port, make_alias):
        registry = AliasRegistry(port)
        port.failures['persist_alias_list'] = StorageError('storage: disk full')

        with pytest.raises(StorageError):
            run(registry.add(make_alias('userA@2925.com')))

        assert registry.items == ()
        assert registry.error == 'storage: disk full'

    def test_update_persist_failure_leaves_memory_untouched(self, port, make_alias):
        registry = AliasRegistry(port)
        run(registry.add(make_alias('userA@2925.com', status=AliasStatus.CREATING)))
        before = registry.snapshot()
        port.failures['persist_alias_list'] = StorageError('storage: disk full')

        with pytest.raises(StorageError):
            run(registry.update('userA@2925.com', {'status': AliasStatus.ACTIVE}))

        assert registry.items == before
        assert registry.items[0].status is AliasStatus.CREATING

    def test_delete_persist_failure_leaves_memory_untouched(self, port, make_alias):
        registry = AliasRegistry(port)
        run(registry.add(make_alias('userA@2925.com')))
        before = registry.snapshot()
        port.failures['persist_alias_list'] = StorageError('storage: disk full')

        with pytest.raises(StorageError):
            run(registry.delete('userA@2925.com'))

        assert registry.items == before
        assert registry.get('userA@2925.com') is not None

    def test_update_status_follows_transitions(self, port, make_alias):
        registry = AliasRegistry(port)
        run(registry.add(make_alias('userA@2925.com', status=AliasStatus.CREATING)))

        updated = run(registry.update('userA@2925.com', {'status': AliasStatus.ACTIVE}))

        assert updated.status is AliasStatus.ACTIVE
        assert port.stored_aliases[0].status is AliasStatus.ACTIVE

    def test_update_rejects_invalid_transition(self, port, make_alias):
        registry = AliasRegistry(port)
        run(registry.add(make_alias('userA@2925.com', status=AliasStatus.ACTIVE)))

        with pytest.raises(InvalidTransitionError):
            run(registry.update('userA@2925.com', {'status': AliasStatus.CREATING}))

        assert registry.items[0].status is AliasStatus.ACTIVE

    def test_update_rejects_address_change(self, port, make_alias):
        registry = AliasRegistry(port)
        run(registry.add(make_alias('userA@2925.com')))

        with pytest.raises(ValidationError):
            run(registry.update('userA@2925.com', {'address': 'userB@2925.com'}))

    def test_update_other_fields(self, port, make_alias):
        registry = AliasRegistry(port)
        run(registry.add(make_alias('userA@2925.com', created_at=1)))

        updated = run(registry.update('userA@2925.com', {'created_at': 99}))

        assert updated.created_at == 99
        assert updated.address == 'userA@2925.com'

    def test_missing_entries_raise_not_found(self, port):
        registry = AliasRegistry(port)

        with pytest.raises(NotFoundError):
            run(registry.update('missing@2925.com', {'status': AliasStatus.ACTIVE}))
        with pytest.raises(NotFoundError):
            run(registry.delete('missing@2925.com'))

    def test_delete(self, port, make_alias):
        registry = AliasRegistry(port)
        first, second = make_alias('userA@2925.com'), make_alias('userB@2925.com')
        run(registry.add(first))
        run(registry.add(second))

        run(registry.delete('userA@2925.com'))

        assert registry.items == (second,)
        assert port.stored_aliases == [second]

    def test_refresh_replaces_list(self, port, make_alias):
        alias = make_alias('userA@2925.com')
        port.stored_aliases = [alias]
        registry = AliasRegistry(port)

        assert run(registry.refresh()) == (alias,)
        assert registry.loading is False

    def test_refresh_failure_keeps_previous_list(self, port, make_alias):
        registry = AliasRegistry(port)
        run(registry.add(make_alias('userA@2925.com')))
        port.failures['load_alias_list'] = StorageError('storage: corrupt')

        with pytest.raises(StorageError):
            run(registry.refresh())

        assert len(registry.items) == 1
        assert registry.error == 'storage: corrupt'


class TestAliasCreator:
    """Test the create -> send -> activate workflow."""

    def make_creator(self, port, clock, account='user@2925.com'):
        registry = AliasRegistry(port)
        return registry, AliasCreator(registry, port, lambda: account, clock=clock)

    def test_successful_creation_activates(self, port, clock):
        registry, creator = self.make_creator(port, clock)

        alias = run(creator.create(suffix='abc123'))

        assert alias.address == 'userabc123@2925.com'
        assert alias.status is AliasStatus.ACTIVE
        assert alias.created_at == clock.now
        assert port.sent == [('userabc123@2925.com', CREATION_SUBJECT, CREATION_BODY)]
        assert registry.items == (alias,)
        assert not creator.is_creating

    def test_generated_suffix_respects_options(self, port, clock):
        _, creator = self.make_creator(port, clock)

        alias = run(creator.create(SuffixOptions(include_letters=False, use_random_length=False, fixed_length=8)))

        assert len(alias.suffix) == 8
        assert alias.suffix.isdigit()

    def test_failed_send_marks_alias_failed(self, port, clock):
        registry, creator = self.make_creator(port, clock)
        port.failures['send_remote_item'] = RuntimeError('SMTP relay denied')

        with pytest.raises(RuntimeError):
            run(creator.create(suffix='xyz'))

        assert registry.items[0].status is AliasStatus.FAILED
        assert creator.error == 'SMTP relay denied'

    def test_requires_account(self, port, clock):
        registry, creator = self.make_creator(port, clock, account=None)

        with pytest.raises(NotAuthenticatedError):
            run(creator.create(suffix='abc'))

        assert registry.items == ()
        assert port.sent == []

    def test_rejects_invalid_suffix(self, port, clock):
        _, creator = self.make_creator(port, clock)

        with pytest.raises(ValidationError):
            run(creator.create(suffix='bad suffix!'))

    def test_duplicate_suffix_is_rejected(self, port, clock):
        registry, creator = self.make_creator(port, clock)
        run(creator.create(suffix='dup'))

        with pytest.raises(DuplicateEntryError):
            run(creator.create(suffix='dup'))

        assert len(registry.items) == 1
        assert len(port.sent) == 1
