import functools
import os
import re
from random import uniform
from time import sleep

import boto3
from botocore.exceptions import ClientError

from chalicelib.constants import substitute_keys
from chalicelib.utils import data
from chalicelib.utils import exceptions
from chalicelib.utils.boto_clients import aws_config_ddb
from chalicelib.utils.logger import logger, log_exception

# Throttling is the storage client's concern, everything else is raised to the caller
RETRY_EXCEPTIONS = ('ProvisionedThroughputExceededException', 'ThrottlingException')
need_return_capacity = ('put_item', 'get_item', 'update_item', 'query')

_TABLES = {}


def exp_db_backoff(func):
    """
        should be used for any atomic
        get/put/update item or query in the code
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger.debug(f'{func.__name__}:: args={args}, kwargs={kwargs}')
        max_retries = 5
        timeout_seed = uniform(0.1, 0.99)

        if func.__name__ not in need_return_capacity:
            raise RuntimeError("This decorator only for DynamoDB methods")
        kwargs.update({'ReturnConsumedCapacity': 'TOTAL'})

        for retries in range(max_retries):
            try:
                result = func(*args, **kwargs)
                logger.info(f'{func.__name__}:: SUCCESS')
                return result
            except ClientError as e:
                if e.response.get('Error', {}).get('Code') not in RETRY_EXCEPTIONS:
                    raise
                logger.warning(f'{func.__name__}:: throttled, retry #{retries + 1}')
                sleep(timeout_seed * 2 ** retries)

        raise exceptions.NumberOfRetriesExceeded(
            f"MaxNumber={max_retries} of DB retries has exceeded for {func.__name__}"
        )

    return wrapper


def get_table(table_name: str):
    if table_name not in _TABLES:
        if os.environ.get('ENDPOINT_URL'):
            table = boto3.resource('dynamodb', endpoint_url=os.environ.get('ENDPOINT_URL')).Table(table_name)
        else:
            table = boto3.resource('dynamodb', config=aws_config_ddb).Table(table_name)

        table.put_item = exp_db_backoff(table.put_item)
        table.get_item = exp_db_backoff(table.get_item)
        table.update_item = exp_db_backoff(table.update_item)
        table.query = exp_db_backoff(table.query)
        _TABLES[table_name] = table

    return _TABLES[table_name]


def get_gen_table():
    return get_table(os.environ.get('GEN_TABLE_NAME'))


def _conditional_call(operation, condition_expression: str = None, **kwargs):
    """
    Raise ConditionalCheckFailed if condition_expression is not met
    """
    if condition_expression:
        kwargs.update({'ConditionExpression': condition_expression})
    try:
        return operation(**kwargs)
    except ClientError as error:
        if error.response.get('Error', {}).get('Code') == 'ConditionalCheckFailedException':
            key = kwargs.get('Key') or kwargs.get('Item') or {}
            raise exceptions.ConditionalCheckFailed(
                f"record partkey={key.get('partkey')} sortkey={key.get('sortkey')} "
                f"does not satisfy {condition_expression}")
        log_exception(error, msg=f'{operation.__name__} ::: failed')
        raise


def _names_in(expression: str, expr_attr_names: dict) -> dict:
    used = set(re.findall(r'#\w+', expression))
    return {name: field for name, field in expr_attr_names.items() if name in used}


def put_db_record(item: dict, condition_expression: str = None, table=get_gen_table):
    """
    condition_expression - e.g. 'attribute_not_exists(sortkey)' to make the put a create-only operation
    """
    _conditional_call(table().put_item, condition_expression, Item=item)


def update_db_record(key: dict, update_body: dict, allowed_attrs_to_update: list,
                     allowed_attrs_to_delete: list, condition_expression: str = None, table=get_gen_table):
    """
    condition_expression - e.g. 'attribute_exists(sortkey)' to update only an existing record
    and never create a new one
    """
    data.substitute_keys(dict_to_process=update_body, base_keys=substitute_keys.to_db)
    set_expr, expr_attr_names, expr_attr_values, remove_expr = generate_update_expression(
        update_body=update_body,
        allowed_attrs_to_update=allowed_attrs_to_update,
        allowed_attrs_to_delete=allowed_attrs_to_delete
    )
    update_item_dict = {"Key": key, "ReturnValues": "UPDATED_NEW"}

    set_response = None
    if set_expr:
        set_response = _conditional_call(
            table().update_item, condition_expression,
            **update_item_dict,
            UpdateExpression=set_expr,
            ExpressionAttributeNames=_names_in(set_expr, expr_attr_names),
            ExpressionAttributeValues=expr_attr_values
        )

    remove_response = None
    if remove_expr:
        remove_response = _conditional_call(
            table().update_item, condition_expression,
            **update_item_dict,
            UpdateExpression=remove_expr,
            ExpressionAttributeNames=_names_in(remove_expr, expr_attr_names)
        )

    return set_response, remove_response


def generate_update_expression(update_body: dict, allowed_attrs_to_update: list, allowed_attrs_to_delete: list):
    """
    Generate expressions to update and delete attributes.
    Attribute names always go through ExpressionAttributeNames
    (camelCase document fields and reserved words like `status` are allowed).
    An empty list/dict/string is a real value unless the field is in allowed_attrs_to_delete
    """
    expr_attr_names = {}
    expr_attr_values = {}
    set_parts = []
    remove_parts = []
    for field in allowed_attrs_to_update:
        if field not in update_body or update_body[field] is None:
            continue
        field_value = update_body[field]
        expr_attr_names[f'#{field}'] = field
        if field_value in ['', [], {}] and field in allowed_attrs_to_delete:
            remove_parts.append(f'#{field}')
        else:
            expr_attr_values[f':{field}'] = field_value
            set_parts.append(f'#{field}=:{field}')

    set_expr = f"SET {', '.join(set_parts)}" if set_parts else None
    remove_expr = f"REMOVE {', '.join(remove_parts)}" if remove_parts else None
    return set_expr, expr_attr_names, expr_attr_values or None, remove_expr


def get_db_item(partkey, sortkey, table=get_gen_table):
    result = table().get_item(
        Key={
            'partkey': partkey,
            'sortkey': sortkey
        }
    )

    if 'Item' in result:
        return result['Item']
    else:
        logger.error(f"get_db_item ::: record partkey={partkey} sortkey={sortkey} not found")
        raise exceptions.RecordNotFound(f'record partkey={partkey} sortkey={sortkey} not found')


def query_items_paginated(
        key_condition_expression,
        filter_expression=None,
        projection_expression=None,
        table=get_gen_table,
        index_name=None,
        expr_attr_names=None,
        limit=None,
        start_key=None,
        scan_forward=True
):
    kwargs = {'KeyConditionExpression': key_condition_expression, 'ScanIndexForward': scan_forward}
    if filter_expression:
        kwargs.update({'FilterExpression': filter_expression})

    if projection_expression:
        kwargs.update({'ProjectionExpression': projection_expression})

    if expr_attr_names:
        kwargs.update({'ExpressionAttributeNames': expr_attr_names})

    if limit:
        kwargs.update({'Limit': int(limit)})

    if index_name:
        kwargs.update({'IndexName': index_name})

    if start_key:
        kwargs.update({'ExclusiveStartKey': start_key})

    resp = table().query(**kwargs)
    return resp['Items'], resp.get('LastEvaluatedKey')


def query_items_paged(key_condition_expression, filter_expression=None, projection_expression=None,
                      table=get_gen_table, index_name=None, expr_attr_names=None):
    """ This method shall be used whenever you think the query will
        return more than 1mb of data at once"""
    all_items = []
    last_evaluated_key = None
    while True:
        items, last_evaluated_key = query_items_paginated(
            key_condition_expression,
            filter_expression=filter_expression,
            projection_expression=projection_expression,
            table=table,
            index_name=index_name,
            expr_attr_names=expr_attr_names,
            start_key=last_evaluated_key
        )
        all_items.extend(items)
        if last_evaluated_key is None:
            return all_items
