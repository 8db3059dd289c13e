from fastapi import FastAPI, WebSocket, WebSocketDisconnect, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import json
import logging
from datetime import datetime

from teamflow.config.settings import settings
from teamflow.database import SessionLocal
from teamflow.models.user import User
from teamflow.routers import auth, user, task, checklist, report, notification, dashboard
from teamflow.services.exceptions import TaskError
from teamflow.services.scheduler import task_scheduler
from teamflow.services.websocket_manager import websocket_manager
from teamflow.utils.auth import verify_token

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="TeamFlow API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Route registration
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(user.router, prefix="/users", tags=["Users"])
app.include_router(task.router, tags=["Tasks"])
app.include_router(checklist.router, tags=["Checklist"])
app.include_router(report.router, tags=["Reports"])
app.include_router(notification.router, tags=["Notifications"])
app.include_router(dashboard.router, tags=["Dashboard"])


@app.exception_handler(TaskError)
async def task_error_handler(request: Request, exc: TaskError):
    """Map task-core errors onto HTTP status codes"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.kind}): {exc.message}")
    body = {"detail": exc.message, "error": exc.kind}
    current_version = getattr(exc, "current_version", None)
    if current_version is not None:
        body["current_version"] = current_version
    return JSONResponse(status_code=exc.status_code, content=body)


# Startup and shutdown events
@app.on_event("startup")
async def startup_event():
    """Start the task scheduler when the application starts"""
    logger.info("Starting TeamFlow API...")
    if settings.SCHEDULER['enabled']:
        task_scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the task scheduler when the application shuts down"""
    logger.info("Shutting down TeamFlow API...")
    task_scheduler.stop()


# Root route
@app.get("/")
def read_root():
    return {"message": "TeamFlow API"}

@app.get("/health")
def health():
    return {"status": "ok", "websocket_connections": websocket_manager.get_total_connections()}

@app.get("/scheduler/status")
async def get_scheduler_status():
    """Get scheduler status and job information"""
    return await task_scheduler.get_scheduler_status()

@app.post("/scheduler/trigger/overdue")
async def trigger_overdue_check():
    """Manually run the overdue reconciliation sweep"""
    result = await task_scheduler.check_overdue_tasks()
    return {
        "message": "Overdue sweep completed",
        "transitioned": result.transitioned,
        "skipped": result.skipped,
        "failed": result.failed,
    }

@app.post("/scheduler/trigger/deadline")
async def trigger_deadline_check():
    """Manually run the deadline-approaching reminders"""
    notified = await task_scheduler.check_deadline_approaching()
    return {"message": "Deadline check completed", "notified": notified}


def _authenticate_websocket(token: str):
    payload = verify_token(token) if token else None
    if not payload or "sub" not in payload:
        return None
    db = SessionLocal()
    try:
        db_user = db.query(User).filter(User.email == payload["sub"]).first()
        if db_user is None or not db_user.is_active:
            return None
        return db_user.id, db_user.name
    finally:
        db.close()


# WebSocket endpoint for real-time notification push
@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str = None):
    identity = _authenticate_websocket(token)
    if identity is None:
        await websocket.close(code=1008)
        logger.info("WebSocket rejected: missing or invalid token")
        return

    user_id, user_name = identity
    await websocket.accept()
    await websocket_manager.connect(websocket, user_id)
    logger.info(f"WebSocket authenticated user: {user_name} (ID: {user_id})")

    try:
        while True:
            data = await websocket.receive_text()
            try:
                received = json.loads(data)
            except json.JSONDecodeError:
                continue
            if received.get("type") == "ping":
                await websocket_manager.send_personal_message(
                    {"type": "pong", "timestamp": datetime.now().isoformat()},
                    websocket,
                )
    except WebSocketDisconnect:
        websocket_manager.disconnect(websocket, user_id)
