"""FastAPI application entry point."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from gathering.config import settings
from gathering.database import Base, engine

# Import routers
from gathering.routers import users, events, rsvps, waitlist, invitations, notifications

# Import all models so Base.metadata knows about them
from gathering.models.user import User                    # noqa: F401
from gathering.models.event import Event                  # noqa: F401
from gathering.models.rsvp import RSVP                    # noqa: F401
from gathering.models.waitlist import WaitlistEntry       # noqa: F401
from gathering.models.notification import Notification    # noqa: F401
from gathering.models.invite_link import InviteLink       # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Gathering",
    description="Event lifecycle, capacity-gated RSVPs and FIFO waitlists",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(events.router, prefix="/api/events", tags=["Events"])
app.include_router(rsvps.router, prefix="/api/events", tags=["RSVPs"])
app.include_router(waitlist.router, prefix="/api/events", tags=["Waitlist"])
app.include_router(invitations.router, prefix="/api", tags=["Invitations"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
