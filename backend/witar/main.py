from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from witar.core.config import settings
from witar.core.logging import configure_logging
import witar.models  # noqa: F401  # force model registration

from witar.api.v1.auth import router as auth_router
from witar.api.v1.companies import router as companies_router
from witar.api.v1.invitations import router as invitations_router
from witar.api.v1.members import router as members_router
from witar.api.v1.departments import router as departments_router
from witar.api.v1.time_clock import router as time_clock_router
from witar.api.v1.time_entry_edit_requests import router as edit_requests_router
from witar.api.v1.leave_requests import router as leave_requests_router
from witar.api.v1.documents import router as documents_router
from witar.api.v1.notifications import router as notifications_router
from witar.api.v1.billing import router as billing_router
from witar.api.v1.reports import router as reports_router
from witar.api.v1.dashboard import router as dashboard_router
from witar.api.v1.jobs import router as jobs_router


def create_application() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Witar API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def root():
        return {"status": "ok", "service": "witar"}

    # Routers
    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(companies_router, prefix="/api/v1")
    app.include_router(invitations_router, prefix="/api/v1")
    app.include_router(members_router, prefix="/api/v1")
    app.include_router(departments_router, prefix="/api/v1")
    app.include_router(time_clock_router, prefix="/api/v1")
    app.include_router(edit_requests_router, prefix="/api/v1")
    app.include_router(leave_requests_router, prefix="/api/v1")
    app.include_router(documents_router, prefix="/api/v1")
    app.include_router(notifications_router, prefix="/api/v1")
    app.include_router(billing_router, prefix="/api/v1")
    app.include_router(reports_router, prefix="/api/v1")
    app.include_router(dashboard_router, prefix="/api/v1")
    app.include_router(jobs_router, prefix="/api/v1")

    return app


app = create_application()
