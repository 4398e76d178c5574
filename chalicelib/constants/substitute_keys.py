# key in db -> key in ui, None means the key is not exposed
from_db = {
    'partkey': None,
    'sortkey': None,
    'record_type': None,
    'company_id': None,
    'id_': 'id',
    'status_': 'status'
}

to_db = {
    'id': 'id_',
    'status': 'status_'
}
