import os

from chalice import Chalice

from chalicelib import orders, profiles, ratings, restaurants, triggers
from chalicelib.profile_schema import run_bulk_profile_migration, run_legacy_push_token_pass
from chalicelib.rating_aggregates import recompute_all_restaurant_ratings
from chalicelib.utils.logger import set_request_id

app = Chalice(app_name='marketplace-schema-layer')

app.debug = os.environ.get('DEBUG', 'false').lower() == 'true'


def get_table_stream_arn():
    return os.environ["TABLE_STREAM_ARN"]


@app.route('/health-check', methods=['GET'], cors=True)
def health_check():
    return {'health': 'check'}


@app.on_dynamodb_record(stream_arn=get_table_stream_arn())
def db_table_stream_trigger(event):
    return triggers.db_table_stream_trigger(event)


# PROFILE
@app.route('/users', methods=['GET'], cors=True)
def get_user():
    return profiles.endpoint_get_profile(app.current_request)


@app.route('/users/notification-preferences', methods=['PUT'], cors=True)
def update_notification_preferences():
    return profiles.endpoint_update_notification_preferences(app.current_request)


@app.route('/users/push-token', methods=['PUT'], cors=True)
def register_push_token():
    """
    {"token": "...", "platform": "ios" | "android" | "web"}
    """
    return profiles.endpoint_register_push_token(app.current_request)


# FAVORITES
@app.route('/favorites', methods=['GET'], cors=True)
def get_favorites():
    return profiles.endpoint_get_favorites(app.current_request)


@app.route('/favorites/{restaurant_id}', methods=['POST'], cors=True)
def add_favorite(restaurant_id):
    return profiles.endpoint_add_favorite(app.current_request, restaurant_id)


@app.route('/favorites/{restaurant_id}', methods=['DELETE'], cors=True)
def remove_favorite(restaurant_id):
    return profiles.endpoint_remove_favorite(app.current_request, restaurant_id)


# RESTAURANTS
@app.route('/restaurants/{restaurant_id}', methods=['GET'], cors=True)
def get_restaurant_by_id(restaurant_id):
    return restaurants.endpoint_get_by_id(app.current_request, restaurant_id)


@app.route('/restaurants/{restaurant_id}/ratings', methods=['GET'], cors=True)
def get_restaurant_ratings(restaurant_id):
    """
    public ratings, newest first, ?page_size=&offset=
    """
    return ratings.endpoint_get_restaurant_ratings(app.current_request, restaurant_id)


# ORDERS
@app.route('/orders', methods=['GET'], cors=True)
def get_orders():
    """
    user can get his orders
    """
    return orders.endpoint_get_orders(app.current_request)


@app.route('/orders/restaurant/{restaurant_id}', methods=['GET'], cors=True)
def get_restaurant_orders(restaurant_id):
    """
    restaurant manager and admin operation
    """
    return orders.endpoint_get_restaurant_orders(app.current_request, restaurant_id)


@app.route('/orders/{restaurant_id}/{order_id}', methods=['GET'], cors=True)
def get_order_by_id(restaurant_id, order_id):
    """
    user can get details only his orders
    restaurant manager and admin can get details of any order
    """
    return orders.endpoint_get_order(app.current_request, restaurant_id, order_id)


# RATINGS
@app.route('/ratings', methods=['POST'], cors=True)
def create_rating():
    return ratings.endpoint_create_rating(app.current_request)


@app.route('/ratings/{restaurant_id}/{order_id}', methods=['PUT'], cors=True)
def update_rating(restaurant_id, order_id):
    """
    author only, within 24 hours of creation
    """
    return ratings.endpoint_update_rating(app.current_request, restaurant_id, order_id)


# ONE-OFF JOBS, invoked manually with {"company_id": "..."}
@app.lambda_function(name='bulk_profile_migration')
def bulk_profile_migration(event, context):
    set_request_id()
    return run_bulk_profile_migration(event['company_id'])


@app.lambda_function(name='deactivate_legacy_push_tokens')
def deactivate_legacy_push_tokens(event, context):
    set_request_id()
    return run_legacy_push_token_pass(event['company_id'])


@app.lambda_function(name='recompute_rating_aggregates')
def recompute_rating_aggregates(event, context):
    set_request_id()
    return recompute_all_restaurant_ratings(event['company_id'])
