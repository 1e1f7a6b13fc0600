import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from taskflow.config import settings
from taskflow.errors import ServiceError, service_error_handler, validation_error_handler
from taskflow.log import configure_logging
from taskflow.routes.auth import router as auth_router
from taskflow.routes.health import router as health_router
from taskflow.routes.invitations import router as invitations_router
from taskflow.routes.members import router as members_router
from taskflow.routes.migrations import router as migrations_router
from taskflow.routes.projects import router as projects_router

def create_app() -> FastAPI:
    configure_logging(settings.log_level)

    app = FastAPI(title="taskflow-api", version="0.1.0")
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(projects_router)
    app.include_router(invitations_router)
    app.include_router(members_router)
    app.include_router(migrations_router)
    return app

app = create_app()

def run() -> None:
    uvicorn.run("taskflow.main:app", host=settings.app_host, port=settings.app_port, log_level=settings.log_level.lower())

if __name__ == "__main__":
    run()
