import os
import time
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

import database
from config import settings

router = APIRouter(tags=["health"])

STARTED_AT = time.monotonic()


@router.get("/")
def read_root():
    return {
        "message": f"{settings.api_title} running",
        "version": settings.api_version,
        "docs": "/docs",
    }


@router.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        db = database.db
        if db is not None:
            response["database"] = "✅ Available"
            response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
            response["database_name"] = db.name
            response["connection_status"] = "Connected"
            try:
                collections = db.list_collection_names()
                response["collections"] = collections[:10]
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️  Connected but Error: {str(e)[:80]}"
        else:
            response["database"] = "⚠️  Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


@router.get("/health")
def health():
    db_health = database.connection.health_check()
    return {
        "status": "healthy" if db_health["status"] == "healthy" else "degraded",
        "service": settings.api_title,
        "version": settings.api_version,
        "database": db_health["status"],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/database")
def database_health():
    result = database.connection.health_check()
    return JSONResponse(result, status_code=200 if result["status"] == "healthy" else 503)


@router.get("/health/ready")
def ready():
    if database.connection.health_check()["status"] != "healthy":
        return JSONResponse({"ready": False}, status_code=503)
    return {"ready": True}


@router.get("/health/live")
def live():
    return {"alive": True, "uptime_seconds": round(time.monotonic() - STARTED_AT, 2)}
