from decimal import Decimal

import pytest

from chalicelib.constants.constants import PROFILE_SCHEMA_VERSION, DEFAULT_NOTIFICATION_PREFERENCES
from chalicelib.profile_schema import get_profile_schema_updates, migrate_profile_record, ensure_profile_schema, \
    run_bulk_profile_migration, get_legacy_push_token_updates, run_legacy_push_token_pass
from chalicelib.profiles import get_active_push_tokens
from conftest import COMPANY_ID, profile_record

conforming_fields = {
    'favoriteRestaurants': ['r1'],
    'pushTokens': [],
    'inAppNotifications': [],
    'notificationPreferences': dict(DEFAULT_NOTIFICATION_PREFERENCES)
}


def test_signup_record_gets_all_defaults():
    updates = get_profile_schema_updates({'id_': 'u1', 'email': 'u1@test.com'})

    assert updates == {
        'favoriteRestaurants': [],
        'pushTokens': [],
        'inAppNotifications': [],
        'notificationPreferences': {'push': True, 'email': True, 'favorites': True,
                                    'proximity': True, 'promotions': True},
        'profile_schema_version': PROFILE_SCHEMA_VERSION
    }


def test_conforming_record_needs_no_updates():
    assert get_profile_schema_updates(conforming_fields) == {}


def test_legacy_scalar_favorite_becomes_one_element_list():
    updates = get_profile_schema_updates({**conforming_fields, 'favoriteRestaurants': 'restaurant-42'})

    assert updates == {'favoriteRestaurants': ['restaurant-42'], 'profile_schema_version': PROFILE_SCHEMA_VERSION}


@pytest.mark.parametrize('field, value, expected', [
    ('favoriteRestaurants', None, []),
    ('favoriteRestaurants', '', []),
    ('favoriteRestaurants', {'r2', 'r1'}, ['r1', 'r2']),
    ('favoriteRestaurants', Decimal(42), ['42']),
    ('favoriteRestaurants', 7, ['7']),
    ('favoriteRestaurants', {'id': 'r1'}, []),
    ('favoriteRestaurants', False, []),
    ('pushTokens', 'ExponentPushToken[abc]', []),
    ('inAppNotifications', {'title': 'hi'}, []),
    ('notificationPreferences', True, DEFAULT_NOTIFICATION_PREFERENCES),
    ('notificationPreferences', {'push': False}, {**DEFAULT_NOTIFICATION_PREFERENCES, 'push': False}),
])
def test_wrong_kind_is_replaced(field, value, expected):
    updates = get_profile_schema_updates({**conforming_fields, field: value})

    assert updates[field] == expected
    assert set(updates.keys()) == {field, 'profile_schema_version'}


def test_migrate_profile_record_keeps_other_fields():
    record = migrate_profile_record({'id_': 'u1', 'email': 'u1@test.com', 'pushTokens': [{'token': 't'}]})

    assert record['email'] == 'u1@test.com'
    assert record['pushTokens'] == [{'token': 't'}]
    assert record['favoriteRestaurants'] == []


def test_guard_writes_only_changed_fields(fake_db):
    fake_db.seed(profile_record('u1', favoriteRestaurants='r9', pushTokens=[]))

    profile = ensure_profile_schema(COMPANY_ID, 'u1')

    assert profile['favoriteRestaurants'] == ['r9']
    assert fake_db.writes == [(
        'update', (f'users_{COMPANY_ID}', 'u1'),
        sorted(['favoriteRestaurants', 'inAppNotifications', 'notificationPreferences', 'profile_schema_version'])
    )]
    stored = fake_db.item(f'users_{COMPANY_ID}', 'u1')
    assert stored['favoriteRestaurants'] == ['r9']
    assert stored['notificationPreferences'] == DEFAULT_NOTIFICATION_PREFERENCES


def test_guard_is_idempotent(fake_db):
    fake_db.seed(profile_record('u1'))

    first = ensure_profile_schema(COMPANY_ID, 'u1')
    second = ensure_profile_schema(COMPANY_ID, 'u1')

    assert len(fake_db.writes) == 1
    assert first == second


def test_guard_swallows_read_errors(fake_db):
    fake_db.failing_operations.add('get')

    assert ensure_profile_schema(COMPANY_ID, 'u1') is None
    assert fake_db.writes == []


def test_guard_swallows_write_errors(fake_db):
    fake_db.seed(profile_record('u1'))
    fake_db.failing_operations.add('update')

    assert ensure_profile_schema(COMPANY_ID, 'u1') is None


def test_guard_missing_profile(fake_db):
    assert ensure_profile_schema(COMPANY_ID, 'nobody') is None


def test_bulk_migration(fake_db):
    fake_db.seed(
        profile_record('u1'),
        profile_record('u2', favoriteRestaurants='r1'),
        profile_record('u3', **conforming_fields),
        {'partkey': f'users_{COMPANY_ID}', 'sortkey': 'settings', 'record_type': 'settings'}
    )

    stats = run_bulk_profile_migration(COMPANY_ID)

    assert stats == {'scanned': 3, 'migrated': 2, 'failed': 0}
    assert fake_db.item(f'users_{COMPANY_ID}', 'u2')['favoriteRestaurants'] == ['r1']
    assert 'profile_schema_version' not in fake_db.item(f'users_{COMPANY_ID}', 'u3')

    assert run_bulk_profile_migration(COMPANY_ID) == {'scanned': 3, 'migrated': 0, 'failed': 0}


def test_bulk_migration_counts_failures(fake_db):
    fake_db.seed(profile_record('u1'), profile_record('u2'))
    fake_db.failing_operations.add('update')

    assert run_bulk_profile_migration(COMPANY_ID) == {'scanned': 2, 'migrated': 0, 'failed': 2}


push_tokens = [
    {'token': 'ExponentPushToken[old]', 'platform': 'ios', 'active': True},
    {'token': 'fcm-token-1', 'platform': 'android', 'active': True},
    {'token': 'fcm-token-2', 'platform': 'android', 'active': False},
]


def test_legacy_push_tokens_are_deactivated_not_removed():
    updates = get_legacy_push_token_updates({'pushTokens': push_tokens})

    assert updates['pushTokens'] == [
        {'token': 'ExponentPushToken[old]', 'platform': 'ios', 'active': False},
        push_tokens[1],
        push_tokens[2],
    ]
    assert get_legacy_push_token_updates(updates) == {}


def test_legacy_push_token_pass(fake_db):
    fake_db.seed(profile_record('u1', pushTokens=push_tokens), profile_record('u2', pushTokens=push_tokens[1:]))

    assert run_legacy_push_token_pass(COMPANY_ID) == {'scanned': 2, 'migrated': 1, 'failed': 0}
    assert len(fake_db.item(f'users_{COMPANY_ID}', 'u1')['pushTokens']) == 3


def test_active_push_tokens_skip_inactive_and_legacy():
    assert get_active_push_tokens({'pushTokens': push_tokens}) == ['fcm-token-1']
    assert get_active_push_tokens({'pushTokens': None}) == []
