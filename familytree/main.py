import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from loguru import logger

from familytree.config import settings
from familytree.database import Base, engine
from familytree.errors import register_error_handlers
from familytree.logging_config import configure_logging

# Import models so SQLAlchemy registers tables
from familytree.models import (
    activity_log,
    branch_entry_link,
    change_history,
    family_member,
    feature_flag,
    image,
    pending_member,
    snapshot,
    user,
)

# Routers
from familytree.routers import (
    audit_router,
    auth_router,
    branch_links_router,
    features_router,
    history_router,
    images_router,
    members_router,
    pending_router,
    snapshots_router,
)

configure_logging()

# -----------------------
# CREATE APP
# -----------------------
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Backend API for the family tree: members, reviews, history and backups.",
    version="1.0.0",
)
logger.info(f"Starting {settings.PROJECT_NAME} ({settings.ENV}) on {settings.DATABASE_URL}")

# -----------------------
# CORS
# -----------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# -----------------------
# DATABASE TABLES
# -----------------------
Base.metadata.create_all(bind=engine)

# -----------------------
# STATIC MEDIA FILES
# -----------------------
os.makedirs(settings.LOCAL_MEDIA_PATH, exist_ok=True)
app.mount("/media", StaticFiles(directory=settings.LOCAL_MEDIA_PATH), name="media")

# -----------------------
# ROUTES
# -----------------------
app.include_router(auth_router.router)
app.include_router(members_router.router)
app.include_router(history_router.router)
app.include_router(snapshots_router.router)
app.include_router(pending_router.router)
app.include_router(branch_links_router.router)
app.include_router(images_router.router)
app.include_router(features_router.router)
app.include_router(audit_router.router)


# -----------------------
# HEALTH CHECK
# -----------------------
@app.get("/")
def root():
    return {"message": "Family Tree API is running!"}
