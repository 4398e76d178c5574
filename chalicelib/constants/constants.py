PROFILE_SCHEMA_VERSION = 2

DEFAULT_NOTIFICATION_PREFERENCES = {
    'push': True,
    'email': True,
    'favorites': True,
    'proximity': True,
    'promotions': True
}

# Push tokens of this scheme are no longer delivered to
LEGACY_PUSH_TOKEN_PREFIX = 'ExponentPushToken'

RATING_MIN = 1
RATING_MAX = 5
RATING_COMMENT_MAX_LENGTH = 500
RATING_MAX_PHOTOS = 1
RATING_EDIT_WINDOW_HOURS = 24

RATING_TEXTS = {
    1: 'Çok Kötü',
    2: 'Kötü',
    3: 'Orta',
    4: 'İyi',
    5: 'Mükemmel'
}
RATING_TEXT_UNKNOWN = 'Bilinmeyen'

DEFAULT_RATINGS_PAGE_SIZE = 10

DEFAULT_ITEM_NAME = 'Paket'
DEFAULT_PARTY_NAME = 'Unknown'
DEFAULT_PICKUP_CODE = 'N/A'
DEFAULT_PAYMENT_METHOD = 'cash'
DEFAULT_PAYMENT_STATUS = 'pending'
DEFAULT_ORDER_STATUS = 'pending'
