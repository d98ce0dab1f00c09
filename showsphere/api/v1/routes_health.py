from fastapi import APIRouter, Depends
from sqlalchemy import text

from showsphere.core.container import Services, get_services


router = APIRouter()


@router.get("/health", summary="Health check endpoint", description="Reports database and Redis connectivity.")
async def health_check(services: Services = Depends(get_services)):
    checks = {}
    try:
        async with services.session_factory() as db:
            await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"
    try:
        await services.redis.ping()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"error: {e}"
    status = "ok" if all(value == "ok" for value in checks.values()) else "degraded"
    return {"status": status, **checks}
