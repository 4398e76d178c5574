from typing import Dict, List

from boto3.dynamodb.conditions import Key, Attr
from chalice import Response

from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http200
from chalicelib.order_transform import normalize_order, normalize_orders
from chalicelib.utils import auth as utils_auth, db as utils_db, app as utils_app, exceptions
from chalicelib.utils.logger import logger

STAFF_ROLES = ('admin', 'restaurant_manager')


def get_order_record(company_id, restaurant_id, order_id) -> Dict:
    try:
        return utils_db.get_db_item(
            partkey=keys_structure.orders_pk.format(company_id=company_id),
            sortkey=keys_structure.orders_sk.format(restaurant_id=restaurant_id, order_id=order_id)
        )
    except exceptions.RecordNotFound:
        raise exceptions.OrderNotFound(f'Order {order_id} not found')


def get_user_db_orders(company_id, user_id) -> List[Dict]:
    return utils_db.query_items_paged(
        key_condition_expression=Key('partkey').eq(keys_structure.orders_pk.format(company_id=company_id)),
        filter_expression=Attr('customer.id').eq(user_id)
    )


def get_restaurant_db_orders_paginated(company_id, restaurant_id, limit, start_key):
    partkey = keys_structure.orders_pk.format(company_id=company_id)
    if start_key:
        start_key = {
            'partkey': partkey,
            'sortkey': keys_structure.orders_sk.format(restaurant_id=restaurant_id, order_id=start_key)
        }
    return utils_db.query_items_paginated(
        key_condition_expression=Key('partkey').eq(partkey) & Key('sortkey').begins_with(f'{restaurant_id}_'),
        start_key=start_key,
        limit=limit,
        scan_forward=False
    )


def newest_first(orders: List[Dict]) -> List[Dict]:
    return sorted(orders, key=lambda order: str(order['createdAt']), reverse=True)


def can_view_order(auth_result: Dict, order: Dict) -> bool:
    return auth_result.get('role') in STAFF_ROLES or order['customer']['id'] == auth_result['user_id']


@utils_app.log_start_finish
@utils_auth.authenticate
@utils_app.request_exception_handler
def endpoint_get_order(request, restaurant_id, order_id) -> Response:
    auth_result = request.auth_result
    order = normalize_order(get_order_record(auth_result['company_id'], restaurant_id, order_id))
    if not can_view_order(auth_result, order):
        raise exceptions.OrderNotFound('Requested order not found')
    return Response(status_code=http200, body=order)


@utils_app.log_start_finish
@utils_auth.authenticate
@utils_app.request_exception_handler
def endpoint_get_orders(request) -> Response:
    auth_result = request.auth_result
    orders = newest_first(normalize_orders(get_user_db_orders(auth_result['company_id'], auth_result['user_id'])))
    logger.info(f"endpoint_get_orders ::: user_id={auth_result['user_id']} orders={len(orders)}")
    return Response(status_code=http200, body={'orders': orders, 'count': len(orders)})


@utils_app.log_start_finish
@utils_auth.authenticate
@utils_app.request_exception_handler
def endpoint_get_restaurant_orders(request, restaurant_id) -> Response:
    auth_result = request.auth_result
    if auth_result.get('role') not in STAFF_ROLES:
        raise exceptions.AccessDenied("You don't have permissions to access this resource")
    qp = request.query_params or {}
    db_records, new_last_key = get_restaurant_db_orders_paginated(
        auth_result['company_id'], restaurant_id, qp.get('page_size'), qp.get('start_key'))

    if new_last_key:
        new_last_key = new_last_key['sortkey'][len(f'{restaurant_id}_'):]

    return Response(
        status_code=http200,
        body={
            "orders": normalize_orders(db_records),
            "last_evaluated_key": new_last_key
        }
    )
