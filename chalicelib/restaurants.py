from decimal import Decimal
from typing import Tuple, List, Dict

from chalice import Response

from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http200
from chalicelib.utils import auth as utils_auth, app as utils_app
from chalicelib.utils.logger import logger


class Restaurant(EntityBase):
    pk = keys_structure.restaurants_pk
    sk = keys_structure.restaurants_sk

    def __init__(self, company_id, id_, **kwargs):
        EntityBase.__init__(self, company_id, id_)

        self.title: str = kwargs.get('title')
        self.address: str = kwargs.get('address')
        self.description: str = kwargs.get('description')
        self.cuisine: list = kwargs.get('cuisine', [])
        self.status_: str = kwargs.get('status_') or 'new'
        self.date_created: str = kwargs.get('date_created')
        self.date_updated: str = kwargs.get('date_updated')
        self.archived: bool = kwargs.get('archived', False)
        # derived by rating_aggregates, never written by the restaurant itself
        self.rating_average: Decimal = kwargs.get('rating_average', Decimal(0))
        self.rating_total: int = kwargs.get('rating_total', 0)
        self.rating_distribution: List = kwargs.get('rating_distribution', [0, 0, 0, 0, 0])
        self.record_type = 'restaurant'

    @classmethod
    def init_get_by_id(cls, company_id, restaurant_id):
        logger.info(f"init_get_by_id ::: {restaurant_id=}")
        c = cls(company_id, restaurant_id)
        record = c._get_db_item()
        record.pop('id_', None)
        record.pop('company_id', None)
        c.__init__(company_id, restaurant_id, **record)
        return c

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk.format(company_id=self.company_id), self.sk.format(restaurant_id=self.id_)

    def _to_dict(self) -> Dict:
        return {
            'id_': self.id_,
            'title': self.title,
            'address': self.address,
            'description': self.description,
            'cuisine': self.cuisine,
            'status_': self.status_,
            'date_created': self.date_created,
            'date_updated': self.date_updated,
            'archived': self.archived,
            'rating': {
                'average': self.rating_average,
                'total': self.rating_total,
                'distribution': self.rating_distribution
            }
        }


@utils_app.log_start_finish
@utils_auth.authenticate
@utils_app.request_exception_handler
def endpoint_get_by_id(request, restaurant_id) -> Response:
    restaurant = Restaurant.init_get_by_id(request.auth_result['company_id'], restaurant_id)._to_ui()
    logger.info(f"endpoint_get_by_id ::: returning {restaurant_id=} rating={restaurant['rating']}")
    return Response(status_code=http200, body=restaurant)
