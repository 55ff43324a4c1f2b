from __future__ import annotations

from fastapi import FastAPI

from .routes.core import router as core_router
from .routes.prescreening import router as prescreening_router
from .routes.projects import router as projects_router


def create_app() -> FastAPI:
    app = FastAPI(title="Project Portal API", version="0.1.0")

    app.include_router(core_router)
    app.include_router(prescreening_router)
    app.include_router(projects_router)

    return app


# `portal_api.main:app` is the stable entrypoint; `portal_api.main` re-exports this app.
app = create_app()
