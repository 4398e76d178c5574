__all__ = ["NotAuthorizedException", "AccessDenied", "RecordNotFound", "ConditionalCheckFailed", "NumberOfRetriesExceeded",
           "MandatoryFieldsAreNotFilled", "ValidationException", "OrderNotFound", "RatingAlreadyExists",
           "TooManyPhotos", "RatingEditWindowExpired", "RestaurantAlreadyInFavorites"]


class NotAuthorizedException(Exception):
    pass


# Generic Exceptions
class AccessDenied(Exception):
    pass


class MandatoryFieldsAreNotFilled(Exception):
    pass


# DynamoDB exceptions
class RecordNotFound(Exception):
    pass


class ConditionalCheckFailed(Exception):
    pass


# DB Performance Exception
class NumberOfRetriesExceeded(Exception):
    pass


# Validations exceptions
class ValidationException(Exception):
    pass


class OrderNotFound(Exception):
    pass


# Ratings and favorites
class RatingAlreadyExists(Exception):
    LEVEL = 'warning'


class TooManyPhotos(Exception):
    LEVEL = 'warning'


class RatingEditWindowExpired(Exception):
    LEVEL = 'warning'


class RestaurantAlreadyInFavorites(Exception):
    LEVEL = 'warning'
