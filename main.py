"""
Container Gateway - Main Application
Container lifecycle management on Kubernetes clusters
"""

import os
import asyncio
import logging

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from src.core.config import settings
from src.core.exceptions import GatewayError, ClientNotInitialized
from src.api import containers

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# Create FastAPI application
app = FastAPI(
    title="Container Platform - Container Gateway",
    description="Container lifecycle management on Kubernetes clusters",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
app.include_router(containers.router, prefix="/api/k8s", tags=["Containers"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "Container Gateway",
        "version": "1.0.0",
        "status": "running",
        "port": settings.PORT
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    health_status = {
        "status": "healthy",
        "service": settings.SERVICE_NAME,
        "kubernetes": "not_configured"
    }

    try:
        descriptor = containers.get_connection_descriptor()
    except ClientNotInitialized:
        return health_status
    except GatewayError as e:
        logger.error(f"Kubernetes connection settings are invalid: {e}")
        health_status["kubernetes"] = "misconfigured"
        health_status["status"] = "degraded"
        health_status["error"] = e.kind.value
        return health_status

    try:
        from src.core.kubernetes_client import connect, check_health

        def _probe() -> bool:
            with connect(descriptor) as session:
                return check_health(session)

        k8s_healthy = await asyncio.to_thread(_probe)
        health_status["kubernetes"] = "connected" if k8s_healthy else "disconnected"
        if not k8s_healthy:
            health_status["status"] = "degraded"

    except GatewayError as e:
        logger.error(f"Health check failed: {e}")
        health_status["kubernetes"] = "disconnected"
        health_status["status"] = "degraded"
        health_status["error"] = e.kind.value

    return health_status


@app.exception_handler(GatewayError)
async def gateway_exception_handler(request, exc):
    """Structured gateway errors"""
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict()
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    """Custom HTTP exception handler"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.detail,
            "status_code": exc.status_code
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    """General exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred"
        }
    )


if __name__ == "__main__":
    port = int(os.getenv("PORT", str(settings.PORT)))
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=settings.DEBUG,
        log_level="info"
    )
