"""Render service results as HTTP responses."""

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from pairly.results import ServiceResult


def result_response(result: ServiceResult, success_status: int = 200) -> JSONResponse:
    """The ``ServiceResult`` shape, with the error code's HTTP status on failure."""
    status_code = success_status if result.success or result.code is None else result.code.http_status
    return JSONResponse(status_code=status_code, content=jsonable_encoder(result.to_dict()))
