"""Request body parsing for endpoints that take either forms or JSON.

The book and user endpoints have always been called with
``application/x-www-form-urlencoded`` bodies (``curl -d "name=John&surname=Doe"``),
while newer clients send JSON. ``form_or_json`` picks the decoder from the
Content-Type and validates the result with the same pydantic model either way.
"""

import json
from typing import Any, Awaitable, Callable, TypeVar

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def _read_form(request: Request) -> dict[str, Any]:
    form = await request.form()
    # blank form fields behave as omitted, so defaults apply
    return {key: value for key, value in form.items() if value != ""}


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except json.JSONDecodeError as e:
        raise RequestValidationError(
            [
                {
                    "type": "json_invalid",
                    "loc": ("body", e.pos),
                    "msg": "JSON decode error",
                    "input": {},
                    "ctx": {"error": e.msg},
                }
            ]
        ) from e


def form_or_json(model: type[ModelT]) -> Callable[[Request], Awaitable[ModelT]]:
    """Build a dependency that parses the request body into ``model``.

    Raises:
        RequestValidationError: If the body cannot be decoded or fails
            validation (FastAPI answers 422)
    """

    async def parse_body(request: Request) -> ModelT:
        content_type = request.headers.get("content-type", "")
        if content_type.startswith(FORM_CONTENT_TYPES):
            data = await _read_form(request)
        else:
            data = await _read_json(request)

        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise RequestValidationError(
                [{**error, "loc": ("body", *error["loc"])} for error in e.errors(include_url=False)]
            ) from e

    return parse_body
