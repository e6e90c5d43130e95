"""Shared response envelope: ``{status, message, data?}``."""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException

# Starlette renamed the 422 constant; the number is stable.
UNPROCESSABLE_ENTITY = 422

SUCCESS = "success"
FAIL = "fail"


def _envelope(state: str, message: str, data: Any = None) -> dict:
    body = {"status": state, "message": message}
    if data is not None:
        body["data"] = jsonable_encoder(data, by_alias=True)
    return body


def success_response(
    data: Any = None, message: str = "", status_code: int = status.HTTP_200_OK
) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=_envelope(SUCCESS, message, data))


def error_response(
    status_code: int, message: str, data: Any = None, headers: dict | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content=_envelope(FAIL, message, data), headers=headers
    )


def no_content_response() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _format_validation_errors(errors) -> str:
    parts = []
    for error in errors:
        location = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return "; ".join(parts) or "invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return error_response(exc.status_code, str(exc.detail), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(
            UNPROCESSABLE_ENTITY, _format_validation_errors(exc.errors())
        )
