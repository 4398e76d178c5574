"""
Canonical order format.

Orders were stored in three layouts over time:
    ITEMS           - `items` list of {packageId, name, description, originalPrice, price, quantity, total}
    PACKAGES        - `packages` list, same fields but `packageName` instead of `name`
    SINGLE_PACKAGE  - one `package` struct and a top-level `quantity`
`normalize_order` maps any of them to the one format returned by API responses and order events.
It does no I/O and never raises on an unrecognized shape; normalizing its own output returns it unchanged.
"""
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, List, Any, Optional, Iterable

from chalicelib.constants.constants import DEFAULT_ITEM_NAME, DEFAULT_PARTY_NAME, DEFAULT_PICKUP_CODE, \
    DEFAULT_PAYMENT_METHOD, DEFAULT_PAYMENT_STATUS, DEFAULT_ORDER_STATUS

ZERO = Decimal(0)
ONE = Decimal(1)


class OrderItemsFormat(Enum):
    ITEMS = 'items'
    PACKAGES = 'packages'
    SINGLE_PACKAGE = 'package'
    EMPTY = 'empty'


# DynamoDB number range, anything outside of it can not come from a stored order
MAX_NUMBER_EXPONENT = 125
MIN_NUMBER_EXPONENT = -130


def _in_number_range(value: Decimal) -> bool:
    if not value.is_finite():
        return False
    return value.is_zero() or MIN_NUMBER_EXPONENT <= value.adjusted() <= MAX_NUMBER_EXPONENT


def to_decimal(value, default: Decimal = ZERO) -> Decimal:
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, Decimal):
        return value if _in_number_range(value) else default
    if isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            return default
        return result if _in_number_range(result) else default
    return default


def _or_default(value, default: Decimal) -> Decimal:
    """ Missing, non-numeric and zero values are replaced with the default """
    result = to_decimal(value)
    return result if result != ZERO else default


def _non_empty_list(value) -> bool:
    return isinstance(value, list) and len(value) > 0


def detect_items_format(order: Dict) -> OrderItemsFormat:
    if _non_empty_list(order.get('items')):
        return OrderItemsFormat.ITEMS
    if _non_empty_list(order.get('packages')):
        return OrderItemsFormat.PACKAGES
    if isinstance(order.get('package'), dict):
        return OrderItemsFormat.SINGLE_PACKAGE
    return OrderItemsFormat.EMPTY


def _build_item(package_id, name, description, original_price, price, quantity, total) -> Dict:
    price = to_decimal(price)
    quantity = _or_default(quantity, ONE)
    return {
        'packageId': str(package_id) if package_id is not None else None,
        'name': name or DEFAULT_ITEM_NAME,
        'description': description or '',
        'originalPrice': _or_default(original_price, price),
        'price': price,
        'quantity': quantity,
        'total': _or_default(total, price * quantity)
    }


def _items_from_items_list(order: Dict) -> List[Dict]:
    return [
        _build_item(
            package_id=item.get('packageId') or item.get('_id'),
            name=item.get('name') or item.get('packageName'),
            description=item.get('description'),
            original_price=item.get('originalPrice'),
            price=item.get('price'),
            quantity=item.get('quantity'),
            total=item.get('total')
        ) for item in order['items'] if isinstance(item, dict)
    ]


def _items_from_packages_list(order: Dict) -> List[Dict]:
    return [
        _build_item(
            package_id=package.get('packageId') or package.get('_id'),
            name=package.get('packageName') or package.get('name'),
            description=package.get('description'),
            original_price=package.get('originalPrice'),
            price=package.get('price'),
            quantity=package.get('quantity'),
            total=package.get('total')
        ) for package in order['packages'] if isinstance(package, dict)
    ]


def _items_from_single_package(order: Dict) -> List[Dict]:
    package = order['package']
    return [
        _build_item(
            package_id=package.get('id') or package.get('_id'),
            name=package.get('name'),
            description=package.get('description'),
            original_price=package.get('originalPrice'),
            price=package.get('price'),
            quantity=order.get('quantity') or package.get('quantity'),
            total=None
        )
    ]


items_mappers = {
    OrderItemsFormat.ITEMS: _items_from_items_list,
    OrderItemsFormat.PACKAGES: _items_from_packages_list,
    OrderItemsFormat.SINGLE_PACKAGE: _items_from_single_package,
    OrderItemsFormat.EMPTY: lambda order: []
}


def get_order_items(order: Dict) -> List[Dict]:
    return items_mappers[detect_items_format(order)](order)


def _legacy_total_price(order: Dict) -> Decimal:
    pricing = order.get('pricing') if isinstance(order.get('pricing'), dict) else {}
    for value in (order.get('totalPrice'), pricing.get('total'), order.get('totalAmount')):
        total = to_decimal(value)
        if total != ZERO:
            return total
    return ZERO


def calculate_total_price(order: Dict, items: List[Dict]) -> Decimal:
    total = sum((item['total'] for item in items), ZERO)
    return total if total != ZERO else _legacy_total_price(order)


def calculate_savings(items: List[Dict]) -> Decimal:
    return sum(((item['originalPrice'] - item['price']) * item['quantity'] for item in items), ZERO)


def to_id_string(value) -> str:
    if value is None or value == '':
        return ''
    return str(value)


def to_iso_string(value) -> str:
    if hasattr(value, 'isoformat'):
        return value.isoformat()
    if value:
        return value
    return datetime.now(timezone.utc).isoformat()


def _sub_record(order: Dict, key: str) -> Dict:
    value = order.get(key)
    return value if isinstance(value, dict) else {}


def _party_id(party: Dict) -> str:
    return to_id_string(party.get('id') or party.get('_id'))


def _optional(value) -> Optional[Any]:
    if hasattr(value, 'isoformat'):
        return value.isoformat()
    return value or None


def normalize_order(order: Dict) -> Dict:
    items = get_order_items(order)
    customer = _sub_record(order, 'customer')
    restaurant = _sub_record(order, 'restaurant')
    payment = _sub_record(order, 'payment')

    return {
        '_id': to_id_string(order.get('_id')),
        'orderId': order.get('orderId'),
        'pickupCode': order.get('pickupCode') or order.get('orderId') or DEFAULT_PICKUP_CODE,

        'customer': {
            'id': _party_id(customer),
            'name': customer.get('name') or DEFAULT_PARTY_NAME,
            'email': customer.get('email') or '',
            'phone': customer.get('phone') or ''
        },
        'restaurant': {
            'id': _party_id(restaurant),
            'name': restaurant.get('name') or DEFAULT_PARTY_NAME,
            'address': restaurant.get('address') or ''
        },

        'items': items,
        'totalPrice': calculate_total_price(order, items),
        'savings': calculate_savings(items),

        'paymentMethod': order.get('paymentMethod') or payment.get('method') or DEFAULT_PAYMENT_METHOD,
        'paymentStatus': order.get('paymentStatus') or payment.get('status') or DEFAULT_PAYMENT_STATUS,
        'paymentDetails': order.get('paymentDetails') or payment.get('details') or None,

        'status': order.get('status') or DEFAULT_ORDER_STATUS,
        'createdAt': to_iso_string(order.get('createdAt')),
        'updatedAt': to_iso_string(order.get('updatedAt')),

        'notes': order.get('notes') or '',
        'pickupTime': _optional(order.get('pickupTime') or order.get('estimatedPickupTime')) or '',
        'estimatedPickupTime': _optional(order.get('estimatedPickupTime')),
        'actualPickupTime': _optional(order.get('actualPickupTime'))
    }


def normalize_orders(orders: Iterable[Dict]) -> List[Dict]:
    return [normalize_order(order) for order in orders]
