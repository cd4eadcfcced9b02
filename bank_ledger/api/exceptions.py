from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..core.errors import ApiException, validation_failed


logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiException)
    async def api_error_handler(request: Request, exc: ApiException) -> JSONResponse:
        if exc.error.code >= 500:
            logger.error(
                "request.failed",
                extra={"path": request.url.path, "code": exc.error.code},
            )
        return JSONResponse(status_code=exc.error.code, content=exc.error.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        fields = [".".join(str(part) for part in err["loc"]) for err in exc.errors()]
        error = validation_failed(fields)
        return JSONResponse(status_code=error.code, content=error.to_dict())
