from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from datastore.mock_backend import MockBackendStore, build_default_backend
from models.catalog import SENSOR_CATALOG, format_value
from models.records import SensorStatus
from services.alerts import is_reading_alert, latest_reading


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))
templates.env.filters["sensor_value"] = lambda reading: format_value(
    reading.sensor_type, reading.value
)


def get_backend() -> MockBackendStore:
    return build_default_backend()


router = APIRouter(include_in_schema=False)


@router.get("/ui", name="ui_index", response_class=HTMLResponse)
async def ui_index(
    request: Request,
    backend: MockBackendStore = Depends(get_backend),
) -> HTMLResponse:
    readings = backend.list_readings()
    thresholds = {t.sensor_type: t for t in backend.list_thresholds()}
    rows = []
    for sensor_type, info in SENSOR_CATALOG.items():
        latest = latest_reading(readings, sensor_type)
        rows.append(
            SensorStatus(
                info=info,
                latest=latest,
                threshold=thresholds.get(sensor_type),
                in_alert=is_reading_alert(latest, thresholds),
            )
        )
    unread = [n for n in backend.list_notifications() if not n.read]
    return templates.TemplateResponse(
        request,
        "ui/index.html",
        {
            "rows": rows,
            "alert_count": sum(1 for row in rows if row.in_alert),
            "notifications": unread,
        },
    )


@router.get("/", status_code=status.HTTP_200_OK)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /api/health for service status and /ui for the dashboard."}
