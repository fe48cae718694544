from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from app.config import settings
from app.database import Database, get_db
from app.logging_config import get_logger, setup_logging
from app.models import Conversation, Message
from app.routers import admin, rich_menu, webhook

setup_logging(settings.log_level)

logger = get_logger("main")

app = FastAPI(
    title="Travel Bot API",
    description="LINE travel assistant backend",
    version="0.1.0",
)

cors_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook.router)
app.include_router(admin.router)
app.include_router(rich_menu.router)


@app.on_event("startup")
async def open_database() -> None:
    if getattr(app.state, "database", None) is not None:
        return
    settings.require("database_url")
    database = Database(settings.database_url)
    if settings.auto_create_tables:
        database.create_all()
    app.state.database = database
    logger.info("Database ready")


@app.on_event("shutdown")
async def close_database() -> None:
    database = getattr(app.state, "database", None)
    if database is None:
        return
    database.dispose()
    app.state.database = None


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    return {
        "status": "ok",
        "conversations": db.query(Conversation).count(),
        "messages": db.query(Message).count(),
    }
