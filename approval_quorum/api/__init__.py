"""
Approval Quorum API Application Factory
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import get_config
from ..logging_config import setup_logging
from .admin import router as admin_router
from .dependencies import ApprovalSystem
from .transactions import router as transactions_router
from .voters import router as voters_router


def create_app(system: Optional[ApprovalSystem] = None) -> FastAPI:
    """Create and configure the FastAPI application"""
    config = system.config if system else get_config()
    setup_logging(config.log_level, config.log_format, config.log_file)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Close storage on shutdown"""
        yield
        app.state.approval_system.close()

    app = FastAPI(
        title="Approval Quorum API",
        description="Multi-party approval and quorum evaluation for banking transactions",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.approval_system = system or ApprovalSystem(config)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(transactions_router, prefix="/transactions", tags=["Transactions"])
    app.include_router(voters_router, prefix="/voters", tags=["Voters"])
    app.include_router(admin_router, prefix="/audit", tags=["Audit"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "approval_quorum_api",
            "version": __version__
        }

    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None,
               workers: Optional[int] = None) -> None:
    """Run the API with uvicorn using configured host, port and worker count"""
    import uvicorn

    config = get_config()
    workers = workers or config.api_workers
    # uvicorn needs an import string to spawn worker processes
    app = "approval_quorum.api:create_app" if workers > 1 else create_app()
    uvicorn.run(
        app,
        host=host or config.api_host,
        port=port or config.api_port,
        workers=workers,
        factory=workers > 1
    )
