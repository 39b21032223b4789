"""
FastAPI backend for the workflow automation engine.

Runs visual workflows (triggers, actions, logic) depth-first with per-node
retry, timeout and cancellation, and stores incoming webhook payloads.
"""

from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, ORJSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from core.container import container
from core.logging import configure_logging, get_logger
from routers import workflow, webhook

# Initialize settings and logging
settings = container.settings()
configure_logging(settings)
logger = get_logger(__name__)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    # Startup
    logger.info("Starting workflow engine", version=APP_VERSION)

    # Build singletons eagerly so configuration errors surface at startup
    node_registry = container.node_registry()
    container.workflow_service()
    container.webhook_store()
    logger.info("Services started successfully", node_types=len(node_registry.list()))

    yield

    # Shutdown
    active = container.executor_registry().active_workflow_ids()
    for workflow_id in active:
        container.executor_registry().stop(workflow_id)
    if active:
        logger.info("Cancelled in-flight runs", workflow_ids=active)
    logger.info("Services shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Workflow Engine",
    version=APP_VERSION,
    description="Workflow automation backend with triggers, actions and logic nodes",
    lifespan=lifespan,
    default_response_class=ORJSONResponse
)


class CatchAllExceptionsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled exception: {type(e).__name__}: {str(e)}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "success": False,
                    "error": f"{type(e).__name__}: {str(e)}",
                    "detail": "Internal server error"
                }
            )


# Exception middleware is added BEFORE CORS so CORS wraps it
app.add_middleware(CatchAllExceptionsMiddleware)

logger.info("Configuring CORS middleware", origins=settings.cors_origin_list)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(workflow.router)
app.include_router(webhook.router)


@app.get("/health")
async def health_check():
    """Service health and engine status."""
    return {
        "status": "OK",
        "service": "workflow-engine",
        "version": APP_VERSION,
        "environment": "development" if settings.is_development else "production",
        "active_runs": len(container.executor_registry()),
        "timestamp": datetime.now().isoformat()
    }


if __name__ == "__main__":
    import uvicorn
    logger.info("Starting workflow engine",
               host=settings.host, port=settings.port, debug=settings.debug)
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        reload_dirs=["."] if settings.debug else None,
        reload_excludes=["*.pyc", "__pycache__", "*.log"] if settings.debug else None,
    )
