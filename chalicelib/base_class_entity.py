from datetime import datetime, timezone
from typing import Tuple, Dict, List

from chalicelib.constants.substitute_keys import from_db
from chalicelib.utils import db as utils_db, exceptions
from chalicelib.utils.data import substitute_keys
from chalicelib.utils.logger import logger


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='seconds')


class EntityBase:
    pk = None
    sk = None

    required_immutable_fields_validation = {}
    required_mutable_fields_validation = {}
    optional_fields_validation = {}

    def __init__(self, company_id, id_):
        self.company_id = company_id
        self.id_: str = id_
        self.record_type: str = ''
        self.db_record: Dict = {}

    def _get_pk_sk(self) -> Tuple[str, str]:
        """
        Should be re-implemented in each child class
        :return:
        partkey, sortkey of db item for child
        """
        return self.pk, self.sk

    def _get_db_item(self) -> Dict:
        return utils_db.get_db_item(*self._get_pk_sk())

    def _to_dict(self) -> Dict:
        """
        Should be re-implemented in each child class
        :return:
        dict of item's attributes
        """
        return {
            'id_': self.id_,
            'record_type': self.record_type
        }

    def _init_db_record(self) -> None:
        """
        New DB record initialization
        :return:
        None
        """
        pk, sk = self._get_pk_sk()
        self.db_record = {
            'partkey': pk,
            'sortkey': sk,
            'company_id': self.company_id,
            'record_type': self.record_type,
            **self._to_dict()
        }

    def _validate_mandatory_fields(self):
        """
        Validates mandatory fields if all fields have correct type to put to db
        Raise ValidationException in case if a field is not valid
        :return:
        None
        """
        for key, validator_func in {
            **self.required_immutable_fields_validation,
            **self.required_mutable_fields_validation
        }.items():
            if validator_func(self.db_record.get(key)) is not True:
                message = f'Validation error occurred while validating the field={key}'
                logger.error(f"_validate_mandatory_fields ::: {message}")
                raise exceptions.ValidationException(message)

    def _validate_optional_fields(self):
        """
        Validates optional fields, None means the field is not set
        Raise ValidationException in case if a field is not valid
        :return:
        None
        """
        for key, validator_func in self.optional_fields_validation.items():
            value = self.db_record.get(key)
            if value is not None and validator_func(value) is not True:
                message = f'Validation error occurred while validating the optional field={key}'
                logger.error(f"_validate_optional_fields ::: {message}")
                raise exceptions.ValidationException(message)

    def _create_db_record(self, condition_expression: str = None) -> None:
        """
        Creates entity db record
        :return:
        None
        """
        self._init_db_record()
        self._validate_mandatory_fields()
        self._validate_optional_fields()
        utils_db.put_db_record(self.db_record, condition_expression=condition_expression)
        logger.info(f"_create_db_record ::: {self.record_type=} {self.id_=} {self.db_record.get('partkey')=} "
                    f"{self.db_record.get('sortkey')=} successfully created")

    def _update_fields_whitelist(self) -> List:
        return [*self.required_mutable_fields_validation.keys(), *self.optional_fields_validation.keys()]

    def _get_validated_update_dict(self, fields: List) -> Dict:
        """
        Validates the fields for update
        Raise ValidationException in case if a field is not valid
        :return:
        dict for update
        """
        current = self._to_dict()
        validation_dict = {**self.required_mutable_fields_validation, **self.optional_fields_validation}
        update_dict = {}
        for key in fields:
            if key not in validation_dict:
                logger.warning(f'_get_validated_update_dict ::: {key=} is not updatable, skipping..')
                continue
            if validation_dict[key](current.get(key)) is not True:
                raise exceptions.ValidationException(f'Validation error occurred while validating the field={key}')
            update_dict[key] = current.get(key)
        return update_dict

    def _update_db_record(self, fields: List) -> Dict:
        """
        Updates the listed fields of the entity db record
        :return:
        dict of updated fields
        """
        pk, sk = self._get_pk_sk()
        update_dict = self._get_validated_update_dict(fields)
        utils_db.update_db_record(
            key={'partkey': pk, 'sortkey': sk},
            update_body=dict(update_dict),
            allowed_attrs_to_update=self._update_fields_whitelist(),
            allowed_attrs_to_delete=[]
        )
        logger.info(f"_update_db_record ::: {self.record_type=} "
                    f"{self.id_=} {pk=} {sk=} fields={list(update_dict.keys())} successfully updated")
        return update_dict

    def _to_ui(self) -> Dict:
        item = self._to_dict()
        substitute_keys(dict_to_process=item, base_keys=from_db)
        return item
