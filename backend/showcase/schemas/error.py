import enum
from typing import Any

from pydantic import BaseModel, ConfigDict
from starlette.responses import JSONResponse


class ErrorCode(str, enum.Enum):
    validation_error = "validation_error"
    store_unavailable = "store_unavailable"
    store_error = "store_error"


STORE_ERROR_DETAIL = "Catalog temporarily unavailable, try again later"


class ErrorResponse(BaseModel):
    """Body of every non-2xx catalog response; ``code`` is null for plain HTTP errors."""

    model_config = ConfigDict(use_enum_values=True)

    detail: Any
    code: ErrorCode | None = None

    def to_response(self, status_code: int) -> JSONResponse:
        return JSONResponse(status_code=status_code, content=self.model_dump(mode="json"))
