from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coupon_engine.api.endpoints import admin, coupons
from coupon_engine.api.errors import register_error_handlers
from coupon_engine.core.database import Base, engine
from coupon_engine.core.settings import settings
from coupon_engine.models import activity, commission, coupon, eligibility_policy, product, profile, subscription  # noqa: F401

app = FastAPI(title="Affiliate Coupon Engine API")

origins = settings.resolved_cors_origins()
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

register_error_handlers(app)


@app.on_event("startup")
def startup() -> None:
    if settings.db_auto_create:
        Base.metadata.create_all(bind=engine)


app.include_router(coupons.router, prefix="/api", tags=["coupons"])
app.include_router(admin.router, prefix="/api", tags=["admin"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
