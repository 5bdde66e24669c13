# FastAPI entrypoint with all routes and middleware

import os
from typing import Optional

import dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from starlette.middleware.gzip import GZipMiddleware

from apps.api.dependencies import ArchiveContainer
from archive.archive_routes import router as archive_router
from auth.auth_routes import router as auth_router
from auth.user_routes import router as user_router
from documents.doc_routes import router as document_router
from security.policy.rbac import PermissionChecker
from storage.database import StorageConfig
from storage.kv_store import KeyValueStore

dotenv.load_dotenv()

DEFAULT_FRONTEND_DOMAINS = [
    "http://localhost:5173",
    "http://localhost:3000",
]


def _frontend_domains() -> list:
    configured = os.getenv("CORS_ALLOW_ORIGINS", "")
    domains = [d.strip() for d in configured.split(",") if d.strip()]
    return domains or DEFAULT_FRONTEND_DOMAINS


def create_app(
    store: Optional[KeyValueStore] = None,
    config: Optional[StorageConfig] = None,
    jwt_secret: str = None,
    jwt_expiry: int = None,
    checker: PermissionChecker = None,
) -> FastAPI:
    """Build the API. Arguments override the environment (used by tests)."""
    app = FastAPI(
        title="Archive Manager API",
        description="Funds, inventories, cases and documents with role-based access",
        version="1.0.0",
    )
    app.state.container = ArchiveContainer(
        store=store,
        config=config,
        jwt_secret=jwt_secret,
        jwt_expiry=jwt_expiry,
        checker=checker,
    )

    # ==================== MIDDLEWARE ====================

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_frontend_domains(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"],
        allow_headers=["Content-Type", "Authorization", "Accept", "Origin"],
        expose_headers=["Content-Disposition", "Content-Type", "Content-Length"],
        max_age=86400,
    )

    @app.middleware("http")
    async def set_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    # ==================== ROUTER REGISTRATION ====================

    app.include_router(auth_router)         # /api/auth
    app.include_router(user_router)         # /api/users
    app.include_router(archive_router)      # /api/funds, /api/archive
    app.include_router(document_router)     # /api/documents, /api/view

    @app.get("/")
    async def root():
        return {
            "message": "Archive Manager Backend",
            "status": "running",
            "docs_url": "/docs",
            "api_base": "/api",
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint for monitoring system status."""
        container = app.state.container
        try:
            return {
                "status": "healthy",
                "storage": type(container.store).__name__,
                "funds": len(container.funds.funds),
                "documents": container.documents.count(),
            }
        except Exception as e:
            logger.error(f"[HEALTH] {e}")
            return {"status": "unhealthy", "error": str(e)}

    logger.info("Archive Manager API initialised")
    return app


def main():
    import uvicorn

    uvicorn.run(
        "apps.api.main:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=False,
    )


if __name__ == "__main__":
    main()
