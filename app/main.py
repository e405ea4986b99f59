from __future__ import annotations

from fastapi import FastAPI, HTTPException

from app.api.routers import companies, plan_catalog, public_catalog, subscriptions, user_integration
from app.infra.db import check_db_ready
from app.infra.logging_config import setup_logging
from app.infra.redis_state import check_redis_ready
from app.infra.user_db import check_user_db_ready

setup_logging()

app = FastAPI(
    title="saas-plans",
    description="Plan catalog, company subscriptions, seat limits and extra-seat pricing.",
    version="0.1.0",
)

app.include_router(plan_catalog.router, prefix="/api/catalog", tags=["catalog"])
app.include_router(public_catalog.router, prefix="/api/public", tags=["public"])
app.include_router(subscriptions.router, prefix="/api/subscriptions", tags=["subscriptions"])
app.include_router(companies.router, prefix="/api/companies", tags=["companies"])
app.include_router(user_integration.router, prefix="/api/integration", tags=["integration"])


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = check_db_ready()
    redis_ok = check_redis_ready()
    user_db_ok = check_user_db_ready()
    checks = {
        "db": "ok" if db_ok else "fail",
        "redis": "ok" if redis_ok else "fail",
        "identity_db": "ok" if user_db_ok else "fail",
    }
    if not (db_ok and redis_ok and user_db_ok):
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
