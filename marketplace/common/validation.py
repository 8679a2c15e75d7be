from typing import Any, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import ValidationFailed

M = TypeVar("M", bound=BaseModel)


def parse_body(model: Type[M], data: Any) -> M:
    """Validate a JSON body, turning pydantic errors into a 400 with field errors."""
    if data is None:
        raise ValidationFailed("Request body must be a JSON object")
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ValidationFailed.from_pydantic(exc) from None
