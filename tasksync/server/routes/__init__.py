"""Route registration for the tasksync API."""

from fastapi import FastAPI

from .integrations import router as integrations_router
from .tasks import router as tasks_router


def register_routes(app: FastAPI):
    app.include_router(integrations_router)
    app.include_router(tasks_router)
