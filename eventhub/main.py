import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .routers import events

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="EventHub API",
    version="1.0.0",
    description="Events with capacity-limited RSVPs",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS for the web client
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(events.router)


@app.get("/")
def read_root():
    return {"message": "EventHub API", "status": "running"}
