from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates
from datetime import datetime
import logging
from pathlib import Path

from timeattack.config.settings import settings
from timeattack.models.task_type import ticket_id_of
from timeattack.services.database import DatabaseManager
from timeattack.services.display import format_duration
from timeattack.services.metrics import MetricsCollector, summarize_session

logger = logging.getLogger(__name__)
app = FastAPI(title="Time Attack Reports")

# Setup templates
templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
templates.env.filters["duration"] = format_duration

def get_db(request: Request) -> DatabaseManager:
    """Database configured on the app, opened lazily from settings otherwise"""
    db = getattr(request.app.state, "db", None)
    if db is None:
        db = DatabaseManager(settings.DEFAULT_DB_PATH)
        request.app.state.db = db
    return db

def get_metrics(db: DatabaseManager = Depends(get_db)) -> MetricsCollector:
    return MetricsCollector(db)

def _parse_date(value: str) -> datetime:
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format")

@app.get("/")
async def dashboard(request: Request, metrics: MetricsCollector = Depends(get_metrics)):
    """Main dashboard view"""
    try:
        today = datetime.now()
        return templates.TemplateResponse(
            request,
            "dashboard.html",
            {
                "weekly": metrics.get_weekly_stats(today),
                "tickets": metrics.get_ticket_reports(),
                "date": today.strftime("%Y-%m-%d")
            }
        )
    except Exception as e:
        logger.error(f"Dashboard error: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@app.get("/api/session/current")
async def current_session(db: DatabaseManager = Depends(get_db)):
    """The open session with its active task, if any"""
    try:
        open_sessions = [s for s in db.load_sessions() if s.is_active]
        if not open_sessions:
            return {"session": None}
        session = open_sessions[-1]
        task = session.active_task
        return {
            "session": summarize_session(session).model_dump(mode="json"),
            "active_task": {
                "type": task.type.display_name,
                "ticket_id": ticket_id_of(task.type),
                "start_time": task.start_time.isoformat(),
                "is_paused": task.is_paused,
                "elapsed": task.actual_duration(),
            } if task else None,
            "suspended": {
                ticket_id: suspension.model_dump(mode="json")
                for ticket_id, suspension in db.load_suspended_sessions().items()
            },
        }
    except Exception as e:
        logger.error(f"Error getting current session: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@app.get("/api/reports/week/{date}")
async def weekly_report(date: str, metrics: MetricsCollector = Depends(get_metrics)):
    """Weekly totals for the week containing a date"""
    date_obj = _parse_date(date)
    try:
        return metrics.get_weekly_stats(date_obj).model_dump(mode="json")
    except Exception as e:
        logger.error(f"Error getting weekly report: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@app.get("/api/reports/tickets")
async def ticket_reports(metrics: MetricsCollector = Depends(get_metrics)):
    """Estimate against actual per ticket"""
    try:
        return [report.model_dump(mode="json") for report in metrics.get_ticket_reports()]
    except Exception as e:
        logger.error(f"Error getting ticket reports: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@app.get("/api/reports/range")
async def range_report(start: str, end: str, metrics: MetricsCollector = Depends(get_metrics)):
    """Daily totals for a date range"""
    start_date = _parse_date(start)
    end_date = _parse_date(end)
    try:
        return metrics.export_timeframe(start_date, end_date)
    except Exception as e:
        logger.error(f"Error getting metrics range: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@app.exception_handler(404)
async def not_found_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=404,
        content={"detail": "Not found"}
    )
