"""
main.py — FastAPI Application Entrypoint

Purpose:
- Build the application through `create_app()` so tests can inject their own
  settings, database and object store.
- Own the process-wide resources: DB engine, S3 client, audit worker.
  Created in the lifespan handler, kept on `app.state`, released at shutdown.
- Register API routers and the error envelope handlers.
- Provide `app` object used by ASGI server (uvicorn / hypercorn).

This file should stay clean. No business logic here.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portal.api.v1 import assignments, auth, blobs, users
from portal.core.config import Settings, get_settings
from portal.core.database import Database
from portal.core.errors import register_exception_handlers
from portal.core.logging import configure_logging, get_logger
from portal.services.audit import AuditRecorder
from portal.storage.object_store import ObjectStore, create_s3_client

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    object_store: Optional[ObjectStore] = None,
) -> FastAPI:
    settings = settings or get_settings()

    configure_logging(settings.LOG_LEVEL)

    # -------------------------------------------------------------------------
    # Resource Lifecycle
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = database or Database(settings.DATABASE_URL)
        store = object_store or ObjectStore(create_s3_client(
            region=settings.S3_REGION,
            endpoint_url=settings.S3_ENDPOINT_URL,
            access_key_id=settings.S3_ACCESS_KEY_ID,
            secret_access_key=settings.S3_SECRET_ACCESS_KEY,
        ))

        if settings.DB_AUTO_CREATE:
            db.create_all()

        recorder = AuditRecorder(db.session, max_pending=settings.AUDIT_QUEUE_SIZE)
        recorder.start()

        app.state.settings = settings
        app.state.database = db
        app.state.object_store = store
        app.state.audit_recorder = recorder
        logger.info("Records portal started (env=%s)", settings.APP_ENV)

        try:
            yield
        finally:
            recorder.stop()
            # Injected resources belong to the caller
            if database is None:
                db.dispose()
            if object_store is None:
                store.close()
            logger.info("Records portal stopped")

    # -------------------------------------------------------------------------
    # App Initialization
    # -------------------------------------------------------------------------

    app = FastAPI(
        title="CPH Records Portal",
        description="Role-based access to patient record files",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # -------------------------------------------------------------------------
    # Router Registration
    # -------------------------------------------------------------------------

    app.include_router(auth.router, prefix=settings.API_PREFIX)
    app.include_router(users.router, prefix=settings.API_PREFIX)
    app.include_router(assignments.router, prefix=settings.API_PREFIX)
    app.include_router(blobs.router, prefix=settings.API_PREFIX)

    # -------------------------------------------------------------------------
    # Health Check
    # -------------------------------------------------------------------------

    @app.get("/")
    def root():
        return {"status": "ok", "message": "Records portal backend running"}

    return app


app = create_app()
