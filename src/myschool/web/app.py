"""FastAPI application exposing the school directory, meals and timetables."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import date as date_type
from datetime import timedelta
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from myschool.config import LOG_FORMAT, parse_log_level
from myschool.ingestion.neis import NeisError
from myschool.models import SchoolRecord
from myschool.service import SchoolService

LOGGER = logging.getLogger(__name__)


def _school_json(school: SchoolRecord) -> Dict[str, str]:
    return {
        "code": school.code,
        "org_code": school.org_code,
        "name": school.name,
        "address": school.address,
        "type": school.kind,
    }


def _today() -> str:
    return date_type.today().strftime("%Y%m%d")


def _require(**params: str | None) -> Dict[str, str]:
    missing = [name for name, value in params.items() if not value]
    if missing:
        raise HTTPException(status_code=400, detail=f"{', '.join(missing)} required")
    return {name: value for name, value in params.items() if value}


def create_app(service: SchoolService, *, start_background: bool = True) -> FastAPI:
    """Build the HTTP surface around an already constructed service."""
    app = FastAPI(title="MySchool API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.service = service
    started_at = time.monotonic()

    @app.on_event("startup")
    async def startup_event() -> None:
        logging.basicConfig(level=parse_log_level(service.config.log_level), format=LOG_FORMAT)
        if start_background:
            service.start()

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        service.close()

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        status = service.status()
        return {
            "status": "healthy",
            "schools_count": status.entry_count,
            "last_refresh": status.last_refresh.isoformat() if status.last_refresh else None,
            "is_loading": status.in_progress,
            "uptime": str(timedelta(seconds=int(time.monotonic() - started_at))),
        }

    @app.get("/api/v1/schools")
    async def list_schools(q: str | None = None) -> List[Dict[str, str]]:
        query = (q or "").strip()
        if not query:
            return [_school_json(school) for school in service.all_schools()]
        try:
            schools = await asyncio.to_thread(service.search, query)
        except NeisError as exc:
            LOGGER.error("Failed to search schools: %s", exc)
            raise HTTPException(status_code=502, detail="failed to search schools") from exc
        return [_school_json(school) for school in schools]

    @app.get("/api/v1/meals")
    async def get_meals(
        org_code: str | None = None,
        school_code: str | None = None,
        date: str | None = None,
    ) -> Dict[str, Any]:
        params = _require(org_code=org_code, school_code=school_code)
        try:
            meals = await asyncio.to_thread(
                service.get_meals, params["org_code"], params["school_code"], date or _today()
            )
        except NeisError as exc:
            LOGGER.error("Failed to get meals: %s", exc)
            raise HTTPException(status_code=502, detail="failed to get meals") from exc
        return {key: {"menu": meal.menu, "calories": meal.calories} for key, meal in meals.items()}

    @app.get("/api/v1/timetables")
    async def get_timetables(
        org_code: str | None = None,
        school_code: str | None = None,
        grade: str | None = None,
        class_name: str | None = Query(None, alias="class"),
        date: str | None = None,
    ) -> List[str]:
        params = _require(org_code=org_code, school_code=school_code, grade=grade, **{"class": class_name})
        try:
            return await asyncio.to_thread(
                service.get_timetable,
                params["org_code"],
                params["school_code"],
                params["grade"],
                params["class"],
                date or _today(),
            )
        except NeisError as exc:
            LOGGER.error("Failed to get timetables: %s", exc)
            raise HTTPException(status_code=502, detail="failed to get timetables") from exc

    return app
