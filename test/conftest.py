import json
import os
from copy import deepcopy
from typing import Optional

import pytest

os.environ.setdefault('GEN_TABLE_NAME', 'test-gen-table')
os.environ.setdefault('TABLE_STREAM_ARN',
                      'arn:aws:dynamodb:eu-central-1:000000000000:table/test-gen-table/stream/2023-01-01T00:00:00.000')
os.environ.setdefault('AWS_DEFAULT_REGION', 'eu-central-1')
os.environ.setdefault('LOG_LEVEL', 'INFO')

from chalicelib.utils import db as utils_db, exceptions  # noqa: E402

COMPANY_ID = 'f770d5f7-6dd2-4cdf-842b-5fd0dd84a52a'
HOST = 'test-domain.com'


def _resolve(item: dict, path: str):
    value = item
    for part in path.split('.'):
        if not isinstance(value, dict) or part not in value:
            return None
        value = value[part]
    return value


def condition_matches(condition, item: dict) -> bool:
    """ Evaluates the boto3 Key/Attr conditions used by the code: =, begins_with, AND """
    expression = condition.get_expression()
    operator, values = expression['operator'], expression['values']
    if operator == 'AND':
        return all(condition_matches(value, item) for value in values)
    attr, expected = values
    actual = _resolve(item, attr.name)
    if operator == '=':
        return actual == expected
    if operator == 'begins_with':
        return isinstance(actual, str) and actual.startswith(expected)
    raise NotImplementedError(f'condition operator {operator} is not supported by the in-memory table')


class InMemoryTable:
    """ Stands in for the utils.db functions, keeps items by (partkey, sortkey) """

    def __init__(self):
        self.items = {}
        self.writes = []
        self.failing_operations = set()

    def _check_failure(self, operation):
        if operation in self.failing_operations:
            raise RuntimeError(f'{operation} is unavailable')

    def seed(self, *items):
        for item in items:
            self.items[(item['partkey'], item['sortkey'])] = deepcopy(item)

    def item(self, partkey, sortkey) -> Optional[dict]:
        return self.items.get((partkey, sortkey))

    def put_db_record(self, item: dict, condition_expression: str = None, table=None):
        self._check_failure('put')
        key = (item['partkey'], item['sortkey'])
        if condition_expression == 'attribute_not_exists(sortkey)' and key in self.items:
            raise exceptions.ConditionalCheckFailed(f'{key} already exists')
        self.items[key] = deepcopy(item)
        self.writes.append(('put', key, sorted(item.keys())))

    def get_db_item(self, partkey, sortkey, table=None):
        self._check_failure('get')
        if (partkey, sortkey) not in self.items:
            raise exceptions.RecordNotFound(f'record partkey={partkey} sortkey={sortkey} not found')
        return deepcopy(self.items[(partkey, sortkey)])

    def update_db_record(self, key: dict, update_body: dict, allowed_attrs_to_update: list,
                         allowed_attrs_to_delete: list, condition_expression: str = None, table=None):
        self._check_failure('update')
        item_key = (key['partkey'], key['sortkey'])
        if condition_expression == 'attribute_exists(sortkey)' and item_key not in self.items:
            raise exceptions.ConditionalCheckFailed(f'{item_key} does not exist')
        item = self.items.setdefault(item_key, dict(key))
        updated = []
        for field in allowed_attrs_to_update:
            if update_body.get(field) is not None:
                item[field] = deepcopy(update_body[field])
                updated.append(field)
        self.writes.append(('update', item_key, sorted(updated)))
        return None, None

    def _query(self, key_condition_expression, filter_expression=None):
        self._check_failure('query')
        found = [
            item for _, item in sorted(self.items.items())
            if condition_matches(key_condition_expression, item)
            and (filter_expression is None or condition_matches(filter_expression, item))
        ]
        return [deepcopy(item) for item in found]

    def query_items_paged(self, key_condition_expression, filter_expression=None, **kwargs):
        return self._query(key_condition_expression, filter_expression)

    def query_items_paginated(self, key_condition_expression, filter_expression=None, limit=None,
                              start_key=None, scan_forward=True, **kwargs):
        items = self._query(key_condition_expression, filter_expression)
        if not scan_forward:
            items.reverse()
        if start_key:
            keys = [(i['partkey'], i['sortkey']) for i in items]
            start = (start_key['partkey'], start_key['sortkey'])
            items = items[keys.index(start) + 1:] if start in keys else []
        if limit and len(items) > int(limit):
            page = items[:int(limit)]
            return page, {'partkey': page[-1]['partkey'], 'sortkey': page[-1]['sortkey']}
        return items, None


@pytest.fixture
def fake_db(monkeypatch) -> InMemoryTable:
    table = InMemoryTable()
    for name in ('put_db_record', 'get_db_item', 'update_db_record', 'query_items_paged', 'query_items_paginated'):
        monkeypatch.setattr(utils_db, name, getattr(table, name))
    return table


@pytest.fixture
def chalice_client():
    from chalice.test import Client
    from app import app

    with Client(app) as client:
        yield client


def make_request(client, endpoint: str = '/', method: str = 'GET', json_body=None, token=None):
    headers = {'Content-Type': 'application/json', 'Host': HOST}
    if token:
        headers['Authorization'] = token
    return client.http.request(
        method=method,
        path=endpoint,
        headers=headers,
        body=json.dumps(json_body).encode() if json_body is not None else b''
    )


def profile_record(user_id: str, **fields) -> dict:
    return {
        'partkey': f'users_{COMPANY_ID}',
        'sortkey': user_id,
        'record_type': 'user',
        'company_id': COMPANY_ID,
        'id_': user_id,
        'email': f'{user_id}@test.com',
        'role': 'user',
        'date_created': '2023-03-01T10:00:00+00:00',
        **fields
    }


def restaurant_record(restaurant_id: str, **fields) -> dict:
    return {
        'partkey': f'restaurants_{COMPANY_ID}',
        'sortkey': restaurant_id,
        'record_type': 'restaurant',
        'company_id': COMPANY_ID,
        'id_': restaurant_id,
        'title': 'Mutlu Waffle',
        'address': 'Kadıköy, İstanbul',
        **fields
    }


def order_record(restaurant_id: str, order_id: str, customer_id: str, **fields) -> dict:
    return {
        'partkey': f'orders_{COMPANY_ID}',
        'sortkey': f'{restaurant_id}_{order_id}',
        'record_type': 'order',
        'orderId': order_id,
        'customer': {'id': customer_id, 'name': 'Ayşe', 'email': 'ayse@test.com', 'phone': '+905551112233'},
        'restaurant': {'id': restaurant_id, 'name': 'Mutlu Waffle', 'address': 'Kadıköy, İstanbul'},
        'status': 'completed',
        'createdAt': '2023-03-01T10:00:00+00:00',
        'updatedAt': '2023-03-01T10:30:00+00:00',
        **fields
    }
