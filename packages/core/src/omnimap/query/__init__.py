from .api_request import ApiRequestBuilder
from .builder import QueryBuilder
from .dispatcher import Dispatcher
from .raw import RawQuery

__all__ = ["ApiRequestBuilder", "QueryBuilder", "Dispatcher", "RawQuery"]
