"""JSON envelope helpers.

Every response body is ``{"message": ..., "data"?: ..., "errors"?: ...}``;
list endpoints add a ``pagination`` block.
"""
from typing import Any, Optional, Type

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .errors import ErrorDetails
from .repositories import Page


def dump(schema: Type[BaseModel], obj: Any) -> dict:
    return schema.model_validate(obj).model_dump(mode="json")


def success_response(data: Any = None, message: str = "Success", status_code: int = 200) -> JSONResponse:
    body = {"message": message}
    if data is not None:
        body["data"] = data
    return JSONResponse(jsonable_encoder(body), status_code=status_code)


def error_response(
    message: str = "Error",
    status_code: int = 400,
    errors: Optional[ErrorDetails] = None,
) -> JSONResponse:
    body: dict = {"message": message}
    if errors is not None:
        body["errors"] = errors
    return JSONResponse(jsonable_encoder(body), status_code=status_code)


def paginated_response(page: Page, items: list, message: str = "Success") -> JSONResponse:
    body = {
        "message": message,
        "data": items,
        "pagination": {
            "current_page": page.page,
            "last_page": page.last_page,
            "per_page": page.per_page,
            "total": page.total,
            "from": page.first_item,
            "to": page.last_item,
        },
    }
    return JSONResponse(jsonable_encoder(body))


def auth_response(user_data: dict, token: str, message: str, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        jsonable_encoder({"message": message, "user": user_data, "token": token}),
        status_code=status_code,
    )
