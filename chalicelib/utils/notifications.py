import json
import os

from chalicelib.utils.boto_clients import sns_client
from chalicelib.utils.logger import logger, CustomJSONEncoder


def order_events_topic_arn():
    return os.environ.get('ORDER_EVENTS_TOPIC_ARN')


def publish_order_event(event_name: str, order: dict):
    topic_arn = order_events_topic_arn()
    if not topic_arn:
        logger.warning(f'publish_order_event ::: ORDER_EVENTS_TOPIC_ARN is not set, {event_name=} skipped')
        return None
    logger.info(f'publish_order_event ::: publishing {event_name=} order_id={order.get("orderId")}')
    response = sns_client.publish(
        TopicArn=topic_arn,
        Message=json.dumps({'event': event_name, 'order': order}, cls=CustomJSONEncoder),
        MessageAttributes={
            'event': {'DataType': 'String', 'StringValue': event_name},
            'restaurant_id': {'DataType': 'String', 'StringValue': order['restaurant']['id'] or 'unknown'}
        }
    )
    logger.info(f'publish_order_event ::: message has been sent, message_id={response.get("MessageId")}')
    return response.get('MessageId')
