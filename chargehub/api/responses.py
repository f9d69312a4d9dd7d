# chargehub/api/responses.py
import logging
from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from chargehub.models.common import ErrorKind

logger = logging.getLogger("chargehub.api")

ERROR_STATUS = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_STATE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.STORE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

INTERNAL_ERROR = "Internal server error"


def error_response(status_code, error):
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def result_response(result, success_status=status.HTTP_200_OK):
    """
    Turn a manager ServiceResult into a JSON response.

    Store failures are reported with a generic message; the details are
    already in the server log.
    """
    if result.success:
        content = {"success": True, "data": result.data}
        if result.message:
            content["message"] = result.message
        if result.summary is not None:
            content["summary"] = result.summary.model_dump()
        if result.total is not None:
            content["total"] = result.total
        return JSONResponse(status_code=success_status, content=jsonable_encoder(content))

    status_code = ERROR_STATUS.get(result.error_kind, status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        return error_response(status_code, INTERNAL_ERROR)
    return error_response(status_code, result.error)
