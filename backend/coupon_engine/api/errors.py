from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from coupon_engine.core.errors import CouponEngineError, EligibilityError


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(CouponEngineError)
    async def coupon_engine_error_handler(request: Request, exc: CouponEngineError):
        content: dict = {"detail": exc.message, "code": exc.code}
        if isinstance(exc, EligibilityError):
            content["unmet_requirements"] = exc.unmet_requirements
        return JSONResponse(status_code=exc.status_code, content=content)
