"""
FastAPI application hosting the monitoring scheduler.

Exposes only the agent control calls (start/stop) and a health check.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request

from inbox_agent.config import settings
from inbox_agent.core.logging import configure_logging, get_logger
from inbox_agent.core.database import Database
from inbox_agent.processors.inbox import InboxProcessor
from inbox_agent.scheduler import MonitorScheduler

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    configure_logging()
    log.info("application_starting")

    db = Database()
    db.init_schema()

    monitor = MonitorScheduler(processor=InboxProcessor(store=db))
    app.state.db = db
    app.state.monitor = monitor

    # The registry is in memory; restore it from persisted intent
    if settings.scheduler_enabled:
        monitor.reconcile(db.get_active_user_ids())
    else:
        log.info("scheduler_disabled", reason="SCHEDULER_ENABLED is false")

    yield

    # Shutdown
    monitor.shutdown()
    log.info("application_stopped")


app = FastAPI(
    title="Inbox Agent",
    description="Autonomous per-user inbox triage",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health(request: Request):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": "1.0.0",
        "active_agents": len(request.app.state.monitor.active_users()),
    }


@app.post("/agent/{user_id}/start")
def start_agent(user_id: str, request: Request):
    """
    Switch the agent on for a user.

    Persists the flag first so the pipeline run triggered by start sees it.
    """
    if not settings.scheduler_enabled:
        raise HTTPException(status_code=503, detail="Scheduler is disabled")

    db: Database = request.app.state.db
    monitor: MonitorScheduler = request.app.state.monitor

    credentials = db.get_credentials(user_id)
    if not credentials or not credentials.is_mail_connected:
        raise HTTPException(status_code=400, detail="Gmail not connected")
    if not credentials.classifier_api_key:
        raise HTTPException(status_code=400, detail="Classifier API key not configured")

    db.upsert_credentials(user_id, agent_active=True)
    monitor.start(user_id)
    return {"status": "monitoring_started", "user_id": user_id}


@app.post("/agent/{user_id}/stop")
def stop_agent(user_id: str, request: Request):
    """Switch the agent off for a user."""
    db: Database = request.app.state.db
    monitor: MonitorScheduler = request.app.state.monitor

    db.upsert_credentials(user_id, agent_active=False)
    monitor.stop(user_id)
    return {"status": "monitoring_stopped", "user_id": user_id}


# Run with: uvicorn inbox_agent.main:app --host 0.0.0.0 --port 8001
