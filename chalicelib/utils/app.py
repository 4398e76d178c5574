import functools
from typing import Callable

from chalice import Response

from chalicelib.constants.status_codes import http400, http403, http404, http500
from chalicelib.utils import exceptions
from chalicelib.utils.logger import logger, log_exception

exception_status_codes = (
    ((exceptions.MandatoryFieldsAreNotFilled,
      exceptions.ValidationException,
      exceptions.RatingAlreadyExists,
      exceptions.TooManyPhotos,
      exceptions.RestaurantAlreadyInFavorites), http400),
    ((exceptions.RecordNotFound,
      exceptions.OrderNotFound), http404),
    ((exceptions.AccessDenied,
      exceptions.RatingEditWindowExpired), http403),
)


def error_response(error: Exception, msg: str = "", status_code: int = 400, *args, **kwargs):
    log_exception(error=error, msg=msg, status_code=status_code, *args, **kwargs)
    return Response(
        body={
            'error': str(error),
            'exception': error.__class__.__name__,
            "message": str(msg),
            'error_id': getattr(logger, 'current_request_id'),
            'level': getattr(error, 'LEVEL', 'exception')
        },
        status_code=status_code,
        headers={'Content-Type': 'application/json'}
    )


def request_exception_handler(func: Callable):
    @functools.wraps(func)
    def result(*args, **kwargs):
        try:
            logger.info(f'Calling function {func.__name__}')
            return func(*args, **kwargs)
        except Exception as exception:
            for exception_classes, status_code in exception_status_codes:
                if isinstance(exception, exception_classes):
                    return error_response(
                        error=exception,
                        msg=f'function = {func.__name__} , error = {exception}',
                        status_code=status_code)
            return error_response(
                error=exception,
                msg=f'function = {func.__name__}, error = {exception}',
                status_code=http500)
    return result


def log_start_finish(func: Callable):
    @functools.wraps(func)
    def result(*args, **kwargs):
        logger.info(f'{func.__name__} ::: started')
        response = func(*args, **kwargs)
        logger.info(f'{func.__name__} ::: finished')
        return response
    return result
