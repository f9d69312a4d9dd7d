# chargehub/services/errors.py
from chargehub.models.common import ErrorKind, ServiceResult


class ChargingError(Exception):
    """Business-rule violation raised inside the managers."""
    kind = ErrorKind.INVALID_STATE


class NotFoundError(ChargingError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(ChargingError):
    kind = ErrorKind.CONFLICT


class InvalidStateError(ChargingError):
    kind = ErrorKind.INVALID_STATE


class RequestValidationError(ChargingError):
    kind = ErrorKind.VALIDATION


def failure_result(error, action, logger):
    """
    Convert an exception raised inside a manager into a failed ServiceResult.

    Business-rule errors keep their message; anything else is logged with a
    traceback and reported as a store failure.
    """
    if isinstance(error, ChargingError):
        logger.warning(f"⚠️ {action} rejected: {str(error)}")
        return ServiceResult.fail(str(error), error.kind)

    logger.error(f"❌ Error {action}: {str(error)}", exc_info=True)
    return ServiceResult.fail(str(error), ErrorKind.STORE)
