from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from config import CORS_ORIGINS
from database.connection import Base, engine
import models  # registers every table on Base.metadata
from utils.logging_utils import log_event, log_error
from utils.rate_limiter import setup_rate_limiting

try:
    Base.metadata.create_all(bind=engine)
    log_event("system", "system", "Tables created (or already present)")
except SQLAlchemyError as e:
    log_error("system", "system", "Could not create tables", str(e))

app = FastAPI(title="PMS Dashboard API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
setup_rate_limiting(app)

from endpoints import (  # noqa: E402
    auth,
    hotels,
    units,
    guests,
    reservations,
    calendar,
    receipts,
    invoices,
    payment_links,
    smart_locks,
    tasks,
    owner_statements,
    notifications,
    reports,
    inbox,
    availability,
    public,
    webhooks,
)

app.include_router(auth.router)
app.include_router(hotels.router)
app.include_router(units.router)
app.include_router(guests.router)
app.include_router(reservations.router)
app.include_router(calendar.router)
app.include_router(receipts.router)
app.include_router(invoices.router)
app.include_router(payment_links.router)
app.include_router(smart_locks.router)
app.include_router(tasks.router)
app.include_router(owner_statements.router)
app.include_router(notifications.router)
app.include_router(reports.router)
app.include_router(inbox.router)
app.include_router(availability.router)
app.include_router(public.router)
app.include_router(webhooks.router)


@app.get("/")
def read_root():
    return {"message": "PMS Dashboard API"}
