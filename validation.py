"""Payload checks run before any store mutation.

Every validator returns the parsed request model or raises ValidationError
carrying the first rule that failed.
"""

from typing import Any, List, Type, TypeVar

import pydantic

from errors import ValidationError
from schemas import CategoryIn, CommentIn, CommentUpdateIn, LoginIn, ProductIn, RegisterIn

M = TypeVar("M", bound=pydantic.BaseModel)


def first_error(errors: List[dict]) -> str:
    error = errors[0]
    field = ".".join(str(part) for part in error["loc"])
    return f"{field}: {error['msg']}" if field else error["msg"]


def _validate(model: Type[M], payload: Any) -> M:
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as exc:
        raise ValidationError(first_error(exc.errors(include_url=False))) from exc


def validate_category(payload: Any) -> CategoryIn:
    return _validate(CategoryIn, payload)


def validate_product(payload: Any) -> ProductIn:
    return _validate(ProductIn, payload)


def validate_comment(payload: Any) -> CommentIn:
    return _validate(CommentIn, payload)


def validate_comment_update(payload: Any) -> CommentUpdateIn:
    return _validate(CommentUpdateIn, payload)


def validate_register(payload: Any) -> RegisterIn:
    return _validate(RegisterIn, payload)


def validate_login(payload: Any) -> LoginIn:
    return _validate(LoginIn, payload)
