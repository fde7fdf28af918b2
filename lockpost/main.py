"""
Main FastAPI application for lockpost.
Serves health, OAuth helpers, resource ingestion, x402 content access and metrics.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lockpost.api.routes import auth, health, resources
from lockpost.core.config import settings
from lockpost.core.logging import configure_logging
from lockpost.utils.metrics import router as metrics_router

configure_logging()

app = FastAPI(
    title="lockpost API",
    description="Proof-gated publication and x402 paid access",
    version="1.0.0",
)

# CORS
origins = settings.cors_origins_list
if not origins:
    origins = [settings.frontend_url, "http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-PAYMENT-RESPONSE"],
)

# Routers
app.include_router(health.router, tags=["health"])
app.include_router(auth.router)
app.include_router(resources.router)
app.include_router(metrics_router)
