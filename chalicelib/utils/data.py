import json
from decimal import Decimal
from typing import Dict

from chalicelib.utils import exceptions


def substitute_keys(dict_to_process: Dict, base_keys: Dict) -> Dict:
    """
    Renames keys in place, a key mapped to None is removed.
    An existing value under the new name is never overwritten
    """
    for old_key, new_key in base_keys.items():
        if old_key not in dict_to_process:
            continue
        value = dict_to_process.pop(old_key)
        if new_key:
            dict_to_process.setdefault(new_key, value)
    return dict_to_process


def _clean_ui_value(value):
    if isinstance(value, dict):
        return {k: _clean_ui_value(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_clean_ui_value(v) for v in value]
    if isinstance(value, float):
        return Decimal(str(value))
    return value


def fix_values_from_ui(item) -> Dict:
    """
    Only a JSON object is accepted as a body, fields sent as null are treated as not sent
    """
    if not isinstance(item, dict):
        return {}
    return _clean_ui_value(item)


def parse_raw_body(chalice_request) -> Dict:
    """
    Numbers with a fraction are parsed as Decimal, the only float type DynamoDB accepts
    """
    if not chalice_request.raw_body:
        return {}
    try:
        item = json.loads(chalice_request.raw_body, parse_float=Decimal)
    except ValueError:
        raise exceptions.ValidationException('request body is not a valid JSON')
    return fix_values_from_ui(item)
