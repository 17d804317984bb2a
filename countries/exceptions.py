import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class CountryServiceError(Exception):
    """Base class for errors raised by the countries pipeline."""


class SourceUnavailable(CountryServiceError):
    """An upstream feed could not be reached or decoded."""

    def __init__(self, source, detail):
        self.source = source
        self.detail = detail
        super().__init__(f"{source}: {detail}")


class ValidationFailed(CountryServiceError):
    """A merged record is missing a required field."""

    def __init__(self, name, details):
        self.name = name
        self.details = details
        super().__init__(f"{name!r} failed validation: {details}")


class PersistenceFailed(CountryServiceError):
    """Writing a single record to the store failed."""

    def __init__(self, name, cause):
        self.name = name
        self.cause = cause
        super().__init__(f"could not persist {name!r}: {cause}")


class InvalidQuery(CountryServiceError):
    """A list query used an unknown filter or sort."""

    def __init__(self, details):
        self.details = details
        super().__init__(str(details))


def api_exception_handler(exc, context):
    """
    DRF exception handler.
    Framework errors (404, 405, parse errors...) keep DRF's response; anything
    else is logged with its traceback and reported as a generic 500.
    """
    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    logger.exception("Unhandled error in %s", view.__class__.__name__ if view else "view", exc_info=exc)
    return Response(
        {"error": "Internal server error"},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
