from boto3.dynamodb.types import TypeDeserializer
from chalice.app import DynamoDBEvent

from chalicelib.order_transform import normalize_order
from chalicelib.utils import notifications as utils_notifications
from chalicelib.utils.logger import logger, log_exception, set_request_id


deserializer = TypeDeserializer()

order_event_names = {
    'insert': 'order_created',
    'modify': 'order_updated'
}


def deserialize_ddb_rec(record=None):
    if record is None:
        record = {}
    return {key: deserializer.deserialize(value) for key, value in record.items()}


def db_trigger_order_record(record_old: dict, record_new: dict, event_id: str, event_name: str):
    """
    Order events carry the canonical order only, whatever layout the record was stored in
    """
    order_event_name = order_event_names.get(event_name.lower())
    if order_event_name is None or not record_new:
        logger.info(f'db_trigger_order_record ::: {event_id=} {event_name=} skipped')
        return None
    return utils_notifications.publish_order_event(order_event_name, normalize_order(record_new))


table_trigger_func_dict = {
    'order': db_trigger_order_record
}


def db_table_stream_trigger(ddb_event: DynamoDBEvent):
    set_request_id()
    logger.debug(f'db_table_stream_trigger ::: function triggered ddb_event={ddb_event.to_dict()}')
    for record in ddb_event:
        try:
            normalized_new = deserialize_ddb_rec(record.new_image)
            normalized_old = deserialize_ddb_rec(record.old_image)
            func_key = normalized_new.get('record_type') or normalized_old.get('record_type')
            if func_key in table_trigger_func_dict.keys():
                table_trigger_func_dict[func_key](normalized_old, normalized_new,
                                                  record.event_id, record.event_name)
        except Exception as e:
            log_exception(e, msg=f'db_table_stream_trigger ::: record event_id={record.event_id} failed')
