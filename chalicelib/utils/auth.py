import functools
import os

from chalice.app import Request

from chalicelib.constants.status_codes import http401
from chalicelib.profile_schema import ensure_profile_schema
from chalicelib.utils import exceptions as utils_exceptions
from chalicelib.utils.app import error_response
from chalicelib.utils.logger import log_request, logger, set_request_id

host_company_id_map = {
    'test-domain.com': 'f770d5f7-6dd2-4cdf-842b-5fd0dd84a52a',
    '127.0.0.1:8000': 'f770d5f7-6dd2-4cdf-842b-5fd0dd84a52a'
}


def get_company_id_by_host(host: str):
    try:
        return host_company_id_map[host]
    except KeyError:
        if os.environ.get('DEFAULT_COMPANY_ID'):
            return os.environ['DEFAULT_COMPANY_ID']
        logger.error(f'get_company_id_by_host ::: unknown {host=}')
        raise utils_exceptions.NotAuthorizedException(f'Unknown domain {host}')


def get_company_id_by_request(request: Request):
    return get_company_id_by_host(request.headers.get('host'))


def _authenticate_request(request: Request) -> dict:
    """
    Resolves the caller and runs the profile schema guard before any business logic.
    The user id is taken from the authorization header, token validation is done by the API gateway
    """
    set_request_id(request)
    log_request(request)
    company_id = get_company_id_by_request(request)
    user_id = request.headers.get('authorization')
    if not user_id:
        raise utils_exceptions.NotAuthorizedException('Error occurred in authorization process')
    profile = ensure_profile_schema(company_id, user_id)
    auth_result = {
        'user_id': user_id,
        'company_id': company_id,
        'role': (profile or {}).get('role'),
        'profile': profile
    }
    setattr(request, 'auth_result', auth_result)
    return auth_result


def authenticate(func):
    """
    Wrapper for functions which require user's authentication
    """

    @functools.wraps(func)
    def result_auth(*args, **kwargs):
        try:
            _authenticate_request(args[0])
        except Exception as err:
            logger.error(f"authenticate ::: {str(err)}")
            return error_response(err, msg=f'{func.__name__}', status_code=http401)
        result = func(*args, **kwargs)
        logger.info(f'authenticate ::: SUCCESS, func.__name__ {func.__name__}')
        return result

    return result_auth
