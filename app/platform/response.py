from typing import Any, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def api_response(
    *,
    data: Optional[Any] = None,
    message: str = "Operation successful",
    status_code: int = status.HTTP_200_OK,
    **fields: Any,
) -> JSONResponse:
    """
    Single source of truth for ALL API responses.
    Automatically sets status = "success" if < 400 else "error".
    Extra keyword fields are placed at the top level of the body next to the
    envelope, which is where the signup form reads `error` and `code` from.
    """
    status_str = "success" if status_code < 400 else "error"
    data = jsonable_encoder(data) if data is not None else {}

    content = {
        "status_code": status_code,
        "status": status_str,
        "message": message,
        "data": data,
    }
    content.update(jsonable_encoder(fields))

    return JSONResponse(status_code=status_code, content=content)
