"""
Order ratings.

Write pipeline of a new rating:
    validate -> one rating per order -> at most one photo -> create-only put -> post-write steps
Post-write steps (the restaurant rating aggregate) run after the rating is stored;
a failing step is logged and never undoes or fails the rating write.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Tuple, Dict, List, Optional
from uuid import uuid4

from chalice import Response

from chalicelib.base_class_entity import EntityBase, now_iso
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import RATING_MIN, RATING_MAX, RATING_COMMENT_MAX_LENGTH, RATING_MAX_PHOTOS, \
    RATING_EDIT_WINDOW_HOURS, RATING_TEXTS, RATING_TEXT_UNKNOWN, DEFAULT_RATINGS_PAGE_SIZE
from chalicelib.constants.status_codes import http200, http201
from chalicelib.order_transform import normalize_order
from chalicelib.orders import get_order_record
from chalicelib.rating_aggregates import recompute_restaurant_rating, get_public_ratings
from chalicelib.utils import auth as utils_auth, app as utils_app, data as utils_data, exceptions
from chalicelib.utils.logger import logger, log_exception

EDITABLE_FIELDS = ('rating', 'comment', 'photos', 'is_public')


def is_valid_score(value) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, Decimal):
        return value == value.to_integral_value() and RATING_MIN <= value <= RATING_MAX
    return isinstance(value, int) and RATING_MIN <= value <= RATING_MAX


def get_rating_text(rating) -> str:
    if not is_valid_score(rating):
        return RATING_TEXT_UNKNOWN
    return RATING_TEXTS.get(int(rating), RATING_TEXT_UNKNOWN)


def parse_photos(photos) -> List[Dict]:
    """
    Mobile clients send `uri`, web clients send `url`
    """
    if photos is None:
        return []
    if not isinstance(photos, list):
        raise exceptions.ValidationException('photos must be a list')
    if len(photos) > RATING_MAX_PHOTOS:
        raise exceptions.TooManyPhotos(f'Maximum {RATING_MAX_PHOTOS} photo allowed per rating')
    parsed = []
    for photo in photos:
        url = photo.get('url') or photo.get('uri') if isinstance(photo, dict) else None
        if not isinstance(url, str) or not url:
            raise exceptions.ValidationException('every photo must have an url')
        parsed.append({
            'url': url,
            'filename': photo.get('filename'),
            'size': photo.get('size'),
            'mime_type': photo.get('mime_type') or photo.get('mimeType'),
            'uploaded_at': photo.get('uploaded_at') or now_iso()
        })
    return parsed


def _parse_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def can_edit(date_created: str, now: Optional[datetime] = None) -> bool:
    """
    A rating can be changed by its author within 24 hours of creation
    """
    if not date_created:
        return False
    now = now or datetime.now(timezone.utc)
    return now - _parse_datetime(date_created) < timedelta(hours=RATING_EDIT_WINDOW_HOURS)


class Rating(EntityBase):
    pk = keys_structure.ratings_pk
    sk = keys_structure.ratings_sk

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'order_id': lambda x: isinstance(x, str) and bool(x),
        'consumer_id': lambda x: isinstance(x, str) and bool(x),
        'restaurant_id': lambda x: isinstance(x, str) and bool(x),
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'rating': is_valid_score,
        'photos': lambda x: isinstance(x, list) and len(x) <= RATING_MAX_PHOTOS,
        'is_public': lambda x: isinstance(x, bool),
        'date_updated': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'comment': lambda x: isinstance(x, str) and len(x) <= RATING_COMMENT_MAX_LENGTH,
        'package_info': lambda x: isinstance(x, dict)
    }

    def __init__(self, company_id, id_, **kwargs):
        EntityBase.__init__(self, company_id, id_)

        self.order_id: str = kwargs.get('order_id')
        self.consumer_id: str = kwargs.get('consumer_id')
        self.restaurant_id: str = kwargs.get('restaurant_id')
        self.rating = kwargs.get('rating')
        self.comment: str = kwargs.get('comment')
        self.photos: List[Dict] = kwargs.get('photos', [])
        self.is_public: bool = kwargs.get('is_public', True)
        self.helpful: int = kwargs.get('helpful', 0)
        self.reported: bool = kwargs.get('reported', False)
        self.package_info: Dict = kwargs.get('package_info')
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.date_updated: str = kwargs.get('date_updated') or self.date_created
        self.record_type = 'rating'

    @classmethod
    def init_get(cls, company_id, restaurant_id, order_id):
        c = cls(company_id, None, restaurant_id=restaurant_id, order_id=order_id)
        record = c._get_db_item()
        record.pop('company_id', None)
        c.__init__(company_id, record.pop('id_', None), **record)
        return c

    @classmethod
    def init_new(cls, company_id, consumer_id, request_body: Dict):
        order_id, restaurant_id = request_body.get('order_id'), request_body.get('restaurant_id')
        if not order_id or not restaurant_id or request_body.get('rating') is None:
            raise exceptions.MandatoryFieldsAreNotFilled('order_id, restaurant_id and rating are required')

        order = normalize_order(get_order_record(company_id, restaurant_id, order_id))
        if order['customer']['id'] != consumer_id:
            raise exceptions.AccessDenied('Only the customer of the order can rate it')

        first_item = order['items'][0] if order['items'] else None
        return cls(
            company_id=company_id,
            id_=str(uuid4()),
            order_id=order_id,
            consumer_id=consumer_id,
            restaurant_id=restaurant_id,
            rating=request_body.get('rating'),
            comment=request_body.get('comment'),
            photos=parse_photos(request_body.get('photos')),
            is_public=request_body.get('is_public', True),
            package_info={
                'package_id': first_item['packageId'],
                'package_name': first_item['name'],
                'package_price': first_item['price']
            } if first_item else None
        )

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk.format(company_id=self.company_id, restaurant_id=self.restaurant_id), \
            self.sk.format(order_id=self.order_id)

    def _to_dict(self) -> Dict:
        return {
            'id_': self.id_,
            'order_id': self.order_id,
            'consumer_id': self.consumer_id,
            'restaurant_id': self.restaurant_id,
            'rating': self.rating,
            'comment': self.comment,
            'photos': self.photos,
            'is_public': self.is_public,
            'helpful': self.helpful,
            'reported': self.reported,
            'package_info': self.package_info,
            'date_created': self.date_created,
            'date_updated': self.date_updated
        }

    def _to_ui(self) -> Dict:
        item = EntityBase._to_ui(self)
        item['rating_text'] = get_rating_text(self.rating)
        item['can_edit'] = can_edit(self.date_created)
        return item

    def exists(self) -> bool:
        try:
            self._get_db_item()
        except exceptions.RecordNotFound:
            return False
        return True

    def create(self):
        if self.exists():
            raise exceptions.RatingAlreadyExists(f'Order {self.order_id} has already been rated')
        if len(self.photos) > RATING_MAX_PHOTOS:
            raise exceptions.TooManyPhotos(f'Maximum {RATING_MAX_PHOTOS} photo allowed per rating')
        try:
            # a concurrent rating of the same order loses here
            self._create_db_record(condition_expression='attribute_not_exists(sortkey)')
        except exceptions.ConditionalCheckFailed:
            raise exceptions.RatingAlreadyExists(f'Order {self.order_id} has already been rated')
        return run_post_write_steps(self)

    def edit(self, consumer_id, changes: Dict, now: Optional[datetime] = None):
        if consumer_id != self.consumer_id:
            raise exceptions.AccessDenied('Only the author can edit the rating')
        if not can_edit(self.date_created, now):
            raise exceptions.RatingEditWindowExpired(
                f'Rating can be edited only within {RATING_EDIT_WINDOW_HOURS} hours of creation')
        fields = [field for field in EDITABLE_FIELDS if field in changes]
        if not fields:
            raise exceptions.MandatoryFieldsAreNotFilled(f'Nothing to update, editable fields: {EDITABLE_FIELDS}')
        if 'photos' in changes:
            self.photos = parse_photos(changes['photos'])
        for field in ('rating', 'comment', 'is_public'):
            if field in changes:
                setattr(self, field, changes[field])
        self.date_updated = now_iso()
        self._update_db_record([*fields, 'date_updated'])
        return run_post_write_steps(self)


def recompute_aggregate_step(rating: Rating):
    recompute_restaurant_rating(rating.company_id, rating.restaurant_id)


post_write_steps = (recompute_aggregate_step,)


def run_post_write_steps(rating: Rating) -> Dict[str, bool]:
    results = {}
    for step in post_write_steps:
        try:
            step(rating)
            results[step.__name__] = True
        except Exception as error:
            results[step.__name__] = False
            log_exception(error, msg=f'run_post_write_steps ::: {step.__name__} failed for '
                                     f'restaurant_id={rating.restaurant_id} order_id={rating.order_id}')
    return results


def get_restaurant_ratings(company_id, restaurant_id, limit: int, offset: int) -> List[Dict]:
    records = sorted(get_public_ratings(company_id, restaurant_id),
                     key=lambda record: record.get('date_created') or '', reverse=True)
    result = []
    for record in records[offset:offset + limit]:
        record = dict(record)
        record.pop('company_id', None)
        result.append(Rating(company_id, record.pop('id_', None), **record)._to_ui())
    return result


@utils_app.log_start_finish
@utils_auth.authenticate
@utils_app.request_exception_handler
def endpoint_create_rating(request) -> Response:
    auth_result = request.auth_result
    rating = Rating.init_new(auth_result['company_id'], auth_result['user_id'], utils_data.parse_raw_body(request))
    steps = rating.create()
    logger.info(f'endpoint_create_rating ::: order_id={rating.order_id} rating={rating.rating} {steps=}')
    return Response(status_code=http201, body=rating._to_ui())


@utils_app.log_start_finish
@utils_auth.authenticate
@utils_app.request_exception_handler
def endpoint_update_rating(request, restaurant_id, order_id) -> Response:
    auth_result = request.auth_result
    rating = Rating.init_get(auth_result['company_id'], restaurant_id, order_id)
    steps = rating.edit(auth_result['user_id'], utils_data.parse_raw_body(request))
    logger.info(f'endpoint_update_rating ::: {order_id=} rating={rating.rating} {steps=}')
    return Response(status_code=http200, body=rating._to_ui())


@utils_app.log_start_finish
@utils_auth.authenticate
@utils_app.request_exception_handler
def endpoint_get_restaurant_ratings(request, restaurant_id) -> Response:
    qp = request.query_params or {}
    try:
        limit = int(qp.get('page_size', DEFAULT_RATINGS_PAGE_SIZE))
        offset = int(qp.get('offset', 0))
    except ValueError:
        raise exceptions.ValidationException('page_size and offset must be integers')
    ratings = get_restaurant_ratings(request.auth_result['company_id'], restaurant_id, max(limit, 0), max(offset, 0))
    return Response(status_code=http200, body={'ratings': ratings, 'count': len(ratings)})
