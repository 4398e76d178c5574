from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Iterable

from boto3.dynamodb.conditions import Key, Attr

from chalicelib.constants import keys_structure
from chalicelib.constants.constants import RATING_MIN, RATING_MAX
from chalicelib.utils import db as utils_db, exceptions
from chalicelib.utils.logger import logger, log_exception

ONE_DECIMAL = Decimal('0.1')


def compute_rating_aggregate(ratings: Iterable) -> Dict:
    """
    :param ratings: integer scores, anything outside 1..5 is ignored
    :return:
    {'average': Decimal rounded half-up to one decimal, 'total': int, 'distribution': [count of 1, ..., count of 5]}
    """
    distribution = [0] * (RATING_MAX - RATING_MIN + 1)
    for rating in ratings:
        if isinstance(rating, bool):
            continue
        try:
            score = int(rating)
        except (TypeError, ValueError):
            continue
        if score != rating or not RATING_MIN <= score <= RATING_MAX:
            continue
        distribution[score - RATING_MIN] += 1

    total = sum(distribution)
    if total == 0:
        return {'average': Decimal(0), 'total': 0, 'distribution': distribution}

    score_sum = sum(count * (index + RATING_MIN) for index, count in enumerate(distribution))
    average = (Decimal(score_sum) / Decimal(total)).quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP)
    return {'average': average, 'total': total, 'distribution': distribution}


def get_public_ratings(company_id, restaurant_id) -> List[Dict]:
    return utils_db.query_items_paged(
        Key('partkey').eq(keys_structure.ratings_pk.format(company_id=company_id, restaurant_id=restaurant_id)),
        filter_expression=Attr('is_public').eq(True)
    )


def recompute_restaurant_rating(company_id, restaurant_id) -> Dict:
    """
    Full rescan of the restaurant's public ratings, the result replaces the stored aggregate
    """
    ratings = get_public_ratings(company_id, restaurant_id)
    aggregate = compute_rating_aggregate(record.get('rating') for record in ratings)
    update_body = {
        'rating_average': aggregate['average'],
        'rating_total': aggregate['total'],
        'rating_distribution': aggregate['distribution']
    }
    try:
        utils_db.update_db_record(
            key={
                'partkey': keys_structure.restaurants_pk.format(company_id=company_id),
                'sortkey': keys_structure.restaurants_sk.format(restaurant_id=restaurant_id)
            },
            update_body=update_body,
            allowed_attrs_to_update=list(update_body.keys()),
            allowed_attrs_to_delete=[],
            condition_expression='attribute_exists(sortkey)'
        )
    except exceptions.ConditionalCheckFailed:
        logger.warning(f'recompute_restaurant_rating ::: {restaurant_id=} has no restaurant record, skipped')
        return aggregate
    logger.info(f"recompute_restaurant_rating ::: {restaurant_id=} rating={aggregate['average']}/5 "
                f"({aggregate['total']} reviews)")
    return aggregate


def recompute_all_restaurant_ratings(company_id) -> Dict:
    restaurants = utils_db.query_items_paged(
        Key('partkey').eq(keys_structure.restaurants_pk.format(company_id=company_id)),
        filter_expression=Attr('record_type').eq('restaurant')
    )
    stats = {'recomputed': 0, 'failed': 0}
    for restaurant in restaurants:
        try:
            recompute_restaurant_rating(company_id, restaurant['id_'])
            stats['recomputed'] += 1
        except Exception as error:
            stats['failed'] += 1
            log_exception(error, msg=f"recompute_all_restaurant_ratings ::: restaurant_id={restaurant.get('id_')}")
    logger.info(f'recompute_all_restaurant_ratings ::: finished {company_id=} {stats=}')
    return stats
