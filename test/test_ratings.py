from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from chalicelib import ratings
from chalicelib.ratings import Rating, can_edit, get_rating_text, parse_photos, get_restaurant_ratings, \
    run_post_write_steps
from chalicelib.utils import exceptions
from conftest import COMPANY_ID, order_record, restaurant_record

RATINGS_PK = f'ratings_{COMPANY_ID}_r1'


@pytest.fixture
def rated_order_db(fake_db):
    fake_db.seed(
        restaurant_record('r1'),
        order_record('r1', 'o1', 'u1', packages=[{'packageId': 'p1', 'packageName': 'Tavuk Döner',
                                                  'price': Decimal(50), 'quantity': Decimal(2)}]),
        order_record('r1', 'o2', 'u1', items=[{'name': 'Waffle', 'price': Decimal(30)}]),
        order_record('r1', 'o3', 'u1'),
    )
    return fake_db


def new_rating(order_id='o1', consumer_id='u1', **fields):
    return Rating.init_new(COMPANY_ID, consumer_id, {'order_id': order_id, 'restaurant_id': 'r1', **fields})


def test_create_rating(rated_order_db):
    rating = new_rating(rating=5, comment='Çok lezzetli', photos=[{'uri': 'file:///photo.jpg'}])

    assert rating.create() == {'recompute_aggregate_step': True}

    stored = rated_order_db.item(RATINGS_PK, 'o1')
    assert stored['consumer_id'] == 'u1'
    assert stored['rating'] == 5
    assert stored['is_public'] is True
    assert stored['photos'][0]['url'] == 'file:///photo.jpg'
    assert stored['package_info'] == {'package_id': 'p1', 'package_name': 'Tavuk Döner',
                                      'package_price': Decimal(50)}
    restaurant = rated_order_db.item(f'restaurants_{COMPANY_ID}', 'r1')
    assert (restaurant['rating_average'], restaurant['rating_total']) == (Decimal(5), 1)


def test_second_rating_for_same_order_is_rejected(rated_order_db):
    new_rating(rating=5).create()

    with pytest.raises(exceptions.RatingAlreadyExists):
        new_rating(rating=1).create()

    assert rated_order_db.item(RATINGS_PK, 'o1')['rating'] == 5


def test_concurrent_duplicate_loses_on_conditional_put(rated_order_db, monkeypatch):
    rating = new_rating(rating=4)
    monkeypatch.setattr(Rating, 'exists', lambda self: False)
    new_rating(rating=5).create()

    with pytest.raises(exceptions.RatingAlreadyExists):
        rating.create()


def test_two_photos_are_rejected(rated_order_db):
    with pytest.raises(exceptions.TooManyPhotos):
        new_rating(rating=5, photos=[{'uri': 'a.jpg'}, {'url': 'b.jpg'}])

    assert rated_order_db.item(RATINGS_PK, 'o1') is None


@pytest.mark.parametrize('score', [0, 6, Decimal('4.5'), True, '5'])
def test_invalid_score_is_rejected(rated_order_db, score):
    with pytest.raises(exceptions.ValidationException):
        new_rating(rating=score).create()


def test_missing_fields_are_rejected(rated_order_db):
    with pytest.raises(exceptions.MandatoryFieldsAreNotFilled):
        Rating.init_new(COMPANY_ID, 'u1', {'order_id': 'o1', 'restaurant_id': 'r1'})


def test_only_the_customer_can_rate(rated_order_db):
    with pytest.raises(exceptions.AccessDenied):
        new_rating(consumer_id='u2', rating=5)


def test_unknown_order(rated_order_db):
    with pytest.raises(exceptions.OrderNotFound):
        new_rating(order_id='missing', rating=5)


def test_package_info_from_any_order_shape(rated_order_db):
    assert new_rating(order_id='o2', rating=4).package_info['package_name'] == 'Waffle'
    assert new_rating(order_id='o3', rating=4).package_info is None


def test_failed_post_write_step_keeps_rating(rated_order_db):
    rated_order_db.failing_operations.add('query')

    assert new_rating(rating=3).create() == {'recompute_aggregate_step': False}
    assert rated_order_db.item(RATINGS_PK, 'o1')['rating'] == 3


def test_post_write_steps_run_in_order(rated_order_db, monkeypatch):
    calls = []

    def first(rating):
        calls.append('first')
        raise RuntimeError('first failed')

    def second(rating):
        calls.append('second')

    monkeypatch.setattr(ratings, 'post_write_steps', (first, second))

    assert run_post_write_steps(new_rating(rating=5)) == {'first': False, 'second': True}
    assert calls == ['first', 'second']


def test_edit_within_window(rated_order_db):
    new_rating(rating=2).create()
    rating = Rating.init_get(COMPANY_ID, 'r1', 'o1')

    rating.edit('u1', {'rating': 4, 'comment': 'Sonradan düzeldi'},
                now=datetime.now(timezone.utc) + timedelta(hours=23))

    stored = rated_order_db.item(RATINGS_PK, 'o1')
    assert (stored['rating'], stored['comment']) == (4, 'Sonradan düzeldi')
    assert rated_order_db.item(f'restaurants_{COMPANY_ID}', 'r1')['rating_distribution'] == [0, 0, 0, 1, 0]


def test_edit_after_window_is_rejected(rated_order_db):
    new_rating(rating=2).create()
    rating = Rating.init_get(COMPANY_ID, 'r1', 'o1')

    with pytest.raises(exceptions.RatingEditWindowExpired):
        rating.edit('u1', {'rating': 5}, now=datetime.now(timezone.utc) + timedelta(hours=25))

    assert rated_order_db.item(RATINGS_PK, 'o1')['rating'] == 2


def test_only_the_author_can_edit(rated_order_db):
    new_rating(rating=2).create()

    with pytest.raises(exceptions.AccessDenied):
        Rating.init_get(COMPANY_ID, 'r1', 'o1').edit('u2', {'rating': 5})


def test_edit_rejects_second_photo(rated_order_db):
    new_rating(rating=2).create()

    with pytest.raises(exceptions.TooManyPhotos):
        Rating.init_get(COMPANY_ID, 'r1', 'o1').edit('u1', {'photos': [{'uri': 'a.jpg'}, {'uri': 'b.jpg'}]})


def test_can_edit():
    created = datetime(2023, 3, 1, 10, 0, tzinfo=timezone.utc)

    assert can_edit(created.isoformat(), now=created + timedelta(hours=23, minutes=59))
    assert not can_edit(created.isoformat(), now=created + timedelta(hours=24))
    assert can_edit('2023-03-01T10:00:00Z', now=created + timedelta(hours=1))
    assert not can_edit(None)


@pytest.mark.parametrize('score, text', [(1, 'Çok Kötü'), (3, 'Orta'), (Decimal(5), 'Mükemmel'), (7, 'Bilinmeyen')])
def test_rating_text(score, text):
    assert get_rating_text(score) == text


def test_parse_photos():
    assert parse_photos(None) == []
    assert parse_photos([]) == []
    assert parse_photos([{'url': 'https://cdn/p.jpg', 'mimeType': 'image/jpeg'}])[0]['mime_type'] == 'image/jpeg'
    with pytest.raises(exceptions.ValidationException):
        parse_photos([{'filename': 'no-url.jpg'}])
    with pytest.raises(exceptions.ValidationException):
        parse_photos('photo.jpg')


def test_restaurant_ratings_are_public_and_newest_first(rated_order_db):
    for order_id, score, is_public in (('o1', 5, True), ('o2', 4, True), ('o3', 1, False)):
        rating = new_rating(order_id=order_id, rating=score, is_public=is_public)
        rating.date_created = f'2023-03-0{order_id[-1]}T10:00:00+00:00'
        rating.create()

    result = get_restaurant_ratings(COMPANY_ID, 'r1', limit=10, offset=0)

    assert [r['order_id'] for r in result] == ['o2', 'o1']
    assert result[0]['rating_text'] == 'İyi'
    assert result[0]['can_edit'] is False
    assert 'partkey' not in result[0]
    assert get_restaurant_ratings(COMPANY_ID, 'r1', limit=1, offset=1)[0]['order_id'] == 'o1'
