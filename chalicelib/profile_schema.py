"""
Profile schema migration.

Profiles are created at signup with a subset of fields, the optional collections were added
to the schema later. Every profile read through `ensure_profile_schema` (and every record of the
bulk pass) is brought to the current shape with a partial update of the changed fields only.
Detection is pure and idempotent: a conforming record produces no updates and no write.
"""
from copy import deepcopy
from typing import Dict, List, Optional

from boto3.dynamodb.conditions import Key, Attr

from chalicelib.constants import keys_structure
from chalicelib.constants.constants import PROFILE_SCHEMA_VERSION, DEFAULT_NOTIFICATION_PREFERENCES, \
    LEGACY_PUSH_TOKEN_PREFIX
from chalicelib.utils import db as utils_db
from chalicelib.utils.logger import logger, log_exception

SCHEMA_VERSION_FIELD = 'profile_schema_version'


def _favorite_restaurants(value):
    if isinstance(value, list):
        return None
    if isinstance(value, (set, tuple)):
        return sorted(str(restaurant_id) for restaurant_id in value)
    if value is None or value == '' or isinstance(value, (bool, dict)):
        return []
    # single restaurant id from the old one-favorite format, numeric ids are read back as Decimal
    return [str(value)]


def _list_field(value):
    if isinstance(value, list):
        return None
    return []


def _notification_preferences(value):
    if not isinstance(value, dict):
        return dict(DEFAULT_NOTIFICATION_PREFERENCES)
    if all(key in value for key in DEFAULT_NOTIFICATION_PREFERENCES):
        return None
    return {**DEFAULT_NOTIFICATION_PREFERENCES, **value}


# field -> function returning the corrected value, or None when the stored value conforms
profile_field_migrations = {
    'favoriteRestaurants': _favorite_restaurants,
    'pushTokens': _list_field,
    'inAppNotifications': _list_field,
    'notificationPreferences': _notification_preferences
}


def get_profile_schema_updates(record: Dict) -> Dict:
    updates = {}
    for field, migration_func in profile_field_migrations.items():
        new_value = migration_func(record.get(field))
        if new_value is not None:
            updates[field] = new_value
    if updates:
        updates[SCHEMA_VERSION_FIELD] = PROFILE_SCHEMA_VERSION
    return updates


def migrate_profile_record(record: Dict) -> Dict:
    return {**record, **deepcopy(get_profile_schema_updates(record))}


def _profile_key(company_id, user_id) -> Dict:
    return {
        'partkey': keys_structure.users_pk.format(company_id=company_id),
        'sortkey': keys_structure.users_sk.format(user_id=user_id)
    }


def apply_profile_updates(key: Dict, updates: Dict):
    utils_db.update_db_record(
        key=key,
        update_body=dict(updates),
        allowed_attrs_to_update=list(updates.keys()),
        allowed_attrs_to_delete=[]
    )


def ensure_profile_schema(company_id, user_id) -> Optional[Dict]:
    """
    Brings the profile of the authenticated user to the current schema.
    Never raises: the request goes on with whatever is stored if the read or the write fails
    :return:
    conforming profile record or None if the profile could not be read
    """
    try:
        key = _profile_key(company_id, user_id)
        record = utils_db.get_db_item(**key)
        updates = get_profile_schema_updates(record)
        if not updates:
            return record
        apply_profile_updates(key, updates)
        logger.info(f'ensure_profile_schema ::: {user_id=} migrated to '
                    f'v{PROFILE_SCHEMA_VERSION}, fields={list(updates.keys())}')
        return {**record, **updates}
    except Exception as error:
        log_exception(error, msg=f'ensure_profile_schema ::: failed for {user_id=}')
        return None


def get_company_profiles(company_id) -> List[Dict]:
    return utils_db.query_items_paged(
        Key('partkey').eq(keys_structure.users_pk.format(company_id=company_id)),
        filter_expression=Attr('record_type').eq('user')
    )


def _run_profile_pass(company_id, get_updates, pass_name: str) -> Dict:
    stats = {'scanned': 0, 'migrated': 0, 'failed': 0}
    for record in get_company_profiles(company_id):
        stats['scanned'] += 1
        updates = get_updates(record)
        if not updates:
            continue
        try:
            apply_profile_updates({'partkey': record['partkey'], 'sortkey': record['sortkey']}, updates)
            stats['migrated'] += 1
            logger.info(f"{pass_name} ::: migrated user_id={record.get('id_')}, fields={list(updates.keys())}")
        except Exception as error:
            stats['failed'] += 1
            log_exception(error, msg=f"{pass_name} ::: failed for user_id={record.get('id_')}")
    logger.info(f'{pass_name} ::: finished {company_id=} {stats=}')
    return stats


def run_bulk_profile_migration(company_id) -> Dict:
    """
    One-time pass over all profiles of the company with the same per-record migration
    as the request guard
    """
    return _run_profile_pass(company_id, get_profile_schema_updates, 'run_bulk_profile_migration')


def is_legacy_push_token(push_token: Dict) -> bool:
    return str(push_token.get('token') or '').startswith(LEGACY_PUSH_TOKEN_PREFIX)


def get_legacy_push_token_updates(record: Dict) -> Dict:
    """
    Tokens of the unsupported scheme are switched off, never removed from the list
    """
    push_tokens = record.get('pushTokens')
    if not isinstance(push_tokens, list):
        return {}
    if not any(isinstance(t, dict) and is_legacy_push_token(t) and t.get('active') for t in push_tokens):
        return {}
    return {
        'pushTokens': [
            {**t, 'active': False} if isinstance(t, dict) and is_legacy_push_token(t) else t
            for t in push_tokens
        ]
    }


def run_legacy_push_token_pass(company_id) -> Dict:
    return _run_profile_pass(company_id, get_legacy_push_token_updates, 'run_legacy_push_token_pass')
