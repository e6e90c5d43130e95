from typing import Any, TypeVar

from fastapi import HTTPException, Request, status
from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class RequestValidator:
    """Turns raw request bodies into pydantic models.

    Constructed once and handed to routes through ``Depends(get_validator)``
    so handlers never touch shared validation state.
    """

    def __init__(self, default_status: int = status.HTTP_400_BAD_REQUEST):
        self.default_status = default_status

    def parse(
        self,
        model: type[ModelT],
        payload: Any,
        status_code: int | None = None,
        message: str | None = None,
    ) -> ModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise HTTPException(
                status_code=status_code or self.default_status,
                detail=message or self.describe(e),
            )

    @staticmethod
    def describe(error: ValidationError) -> str:
        parts = []
        for item in error.errors():
            field = ".".join(str(p) for p in item["loc"])
            parts.append(f"{field}: {item['msg']}" if field else item["msg"])
        return "; ".join(parts)


def get_validator(request: Request) -> RequestValidator:
    return request.app.state.validator
