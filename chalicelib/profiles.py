from typing import Tuple, Dict, List

from chalice import Response

from chalicelib.base_class_entity import EntityBase, now_iso
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import DEFAULT_NOTIFICATION_PREFERENCES, LEGACY_PUSH_TOKEN_PREFIX
from chalicelib.constants.status_codes import http200
from chalicelib.profile_schema import migrate_profile_record, is_legacy_push_token
from chalicelib.restaurants import Restaurant
from chalicelib.utils import auth as utils_auth, app as utils_app, data as utils_data, exceptions
from chalicelib.utils.logger import logger


def _is_bool_flags(value) -> bool:
    return isinstance(value, dict) and all(isinstance(flag, bool) for flag in value.values())


class Profile(EntityBase):
    pk = keys_structure.users_pk
    sk = keys_structure.users_sk

    required_mutable_fields_validation = {
        'date_updated': lambda x: isinstance(x, str),
        'favoriteRestaurants': lambda x: isinstance(x, list) and all(isinstance(i, str) for i in x),
        'pushTokens': lambda x: isinstance(x, list),
        'inAppNotifications': lambda x: isinstance(x, list),
        'notificationPreferences': lambda x: _is_bool_flags(x) and set(DEFAULT_NOTIFICATION_PREFERENCES) <= set(x)
    }

    def __init__(self, company_id, id_, **kwargs):
        EntityBase.__init__(self, company_id, id_)

        self.email: str = kwargs.get('email')
        self.phone: str = kwargs.get('phone')
        self.role: str = kwargs.get('role')
        self.first_name: str = kwargs.get('first_name')
        self.last_name: str = kwargs.get('last_name')
        self.date_created: str = kwargs.get('date_created')
        self.date_updated: str = kwargs.get('date_updated')
        self.favorite_restaurants: List[str] = kwargs.get('favoriteRestaurants', [])
        self.push_tokens: List[Dict] = kwargs.get('pushTokens', [])
        self.in_app_notifications: List[Dict] = kwargs.get('inAppNotifications', [])
        self.notification_preferences: Dict = kwargs.get('notificationPreferences',
                                                         dict(DEFAULT_NOTIFICATION_PREFERENCES))
        self.profile_schema_version = kwargs.get('profile_schema_version')
        self.record_type = 'user'

    @classmethod
    def init_by_request(cls, request):
        """
        The guard has already run for the request; if it could not persist the migration
        the record is migrated in memory so the caller still gets the current shape
        """
        auth_result = request.auth_result
        c = cls(auth_result['company_id'], auth_result['user_id'])
        record = auth_result.get('profile') or c._get_db_item()
        record = migrate_profile_record(record)
        record.pop('company_id', None)
        record.pop('id_', None)
        c.__init__(auth_result['company_id'], auth_result['user_id'], **record)
        return c

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk.format(company_id=self.company_id), self.sk.format(user_id=self.id_)

    def _to_dict(self) -> Dict:
        return {
            'id_': self.id_,
            'email': self.email,
            'phone': self.phone,
            'role': self.role,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'date_created': self.date_created,
            'date_updated': self.date_updated,
            'favoriteRestaurants': self.favorite_restaurants,
            'pushTokens': self.push_tokens,
            'inAppNotifications': self.in_app_notifications,
            'notificationPreferences': self.notification_preferences
        }

    def add_favorite_restaurant(self, restaurant_id: str):
        if restaurant_id in self.favorite_restaurants:
            raise exceptions.RestaurantAlreadyInFavorites('Restaurant is already in favorites')
        self.favorite_restaurants = [*self.favorite_restaurants, restaurant_id]
        self.date_updated = now_iso()
        self._update_db_record(['favoriteRestaurants', 'date_updated'])

    def remove_favorite_restaurant(self, restaurant_id: str):
        self.favorite_restaurants = [i for i in self.favorite_restaurants if i != restaurant_id]
        self.date_updated = now_iso()
        self._update_db_record(['favoriteRestaurants', 'date_updated'])

    def register_push_token(self, token: str, platform: str):
        """
        Upserts the device token by its value, a re-registered token becomes active again
        """
        if is_legacy_push_token({'token': token}):
            raise exceptions.ValidationException(f'{LEGACY_PUSH_TOKEN_PREFIX} tokens are no longer supported')
        self.date_updated = now_iso()
        registered = {'token': token, 'platform': platform, 'active': True, 'lastUsed': self.date_updated}
        is_known = False
        push_tokens = []
        for push_token in self.push_tokens:
            if isinstance(push_token, dict) and push_token.get('token') == token:
                push_token, is_known = {**push_token, **registered}, True
            push_tokens.append(push_token)
        self.push_tokens = push_tokens if is_known else [*push_tokens, registered]
        self._update_db_record(['pushTokens', 'date_updated'])

    def update_notification_preferences(self, preferences: Dict):
        unknown = set(preferences) - set(DEFAULT_NOTIFICATION_PREFERENCES)
        if unknown:
            raise exceptions.ValidationException(f'Unknown notification preferences {sorted(unknown)}')
        self.notification_preferences = {**self.notification_preferences, **preferences}
        self.date_updated = now_iso()
        self._update_db_record(['notificationPreferences', 'date_updated'])


def get_active_push_tokens(profile: Dict) -> List[str]:
    """
    Tokens a push notification can be sent to: active ones of the supported scheme.
    Legacy-scheme tokens are skipped here, switching them off is the job of the legacy token pass
    """
    push_tokens = profile.get('pushTokens')
    if not isinstance(push_tokens, list):
        return []
    return [
        t['token'] for t in push_tokens
        if isinstance(t, dict) and t.get('active') is True and t.get('token') and not is_legacy_push_token(t)
    ]


@utils_app.log_start_finish
@utils_auth.authenticate
@utils_app.request_exception_handler
def endpoint_get_profile(request) -> Response:
    return Response(status_code=http200, body=Profile.init_by_request(request)._to_ui())


@utils_app.log_start_finish
@utils_auth.authenticate
@utils_app.request_exception_handler
def endpoint_update_notification_preferences(request) -> Response:
    profile = Profile.init_by_request(request)
    preferences = utils_data.parse_raw_body(request)
    if not preferences or not _is_bool_flags(preferences):
        raise exceptions.ValidationException('notification preferences must be a non-empty map of booleans')
    profile.update_notification_preferences(preferences)
    return Response(status_code=http200, body={'notificationPreferences': profile.notification_preferences})


@utils_app.log_start_finish
@utils_auth.authenticate
@utils_app.request_exception_handler
def endpoint_register_push_token(request) -> Response:
    profile = Profile.init_by_request(request)
    body = utils_data.parse_raw_body(request)
    token, platform = body.get('token'), body.get('platform') or 'unknown'
    if not isinstance(token, str) or not token or not isinstance(platform, str):
        raise exceptions.MandatoryFieldsAreNotFilled('token is required')
    profile.register_push_token(token, platform)
    logger.info(f'endpoint_register_push_token ::: user_id={profile.id_} {platform=} '
                f'tokens={len(profile.push_tokens)}')
    return Response(status_code=http200, body={'pushTokens': profile.push_tokens})


@utils_app.log_start_finish
@utils_auth.authenticate
@utils_app.request_exception_handler
def endpoint_get_favorites(request) -> Response:
    profile = Profile.init_by_request(request)
    return Response(status_code=http200, body={
        'favorites': profile.favorite_restaurants,
        'count': len(profile.favorite_restaurants)
    })


@utils_app.log_start_finish
@utils_auth.authenticate
@utils_app.request_exception_handler
def endpoint_add_favorite(request, restaurant_id) -> Response:
    profile = Profile.init_by_request(request)
    Restaurant.init_get_by_id(profile.company_id, restaurant_id)
    profile.add_favorite_restaurant(restaurant_id)
    logger.info(f'endpoint_add_favorite ::: user_id={profile.id_} added {restaurant_id=}')
    return Response(status_code=http200, body={
        'message': 'Restaurant added to favorites',
        'favoriteRestaurants': profile.favorite_restaurants
    })


@utils_app.log_start_finish
@utils_auth.authenticate
@utils_app.request_exception_handler
def endpoint_remove_favorite(request, restaurant_id) -> Response:
    profile = Profile.init_by_request(request)
    profile.remove_favorite_restaurant(restaurant_id)
    logger.info(f'endpoint_remove_favorite ::: user_id={profile.id_} removed {restaurant_id=}')
    return Response(status_code=http200, body={
        'message': 'Restaurant removed from favorites',
        'favoriteRestaurants': profile.favorite_restaurants
    })
