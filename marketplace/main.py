import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import uvicorn

from marketplace.core.config import get_settings
from marketplace.core.errors import InternalError, WorkflowError
from marketplace.core.logging_config import setup_logging
from marketplace.routers import auth as auth_router
from marketplace.routers import users as users_router
from marketplace.routers import freelancers as freelancers_router
from marketplace.routers import projects as projects_router
from marketplace.routers import applications as applications_router
from marketplace.routers import submissions as submissions_router

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Freelance Marketplace")

app.include_router(auth_router.router)
app.include_router(users_router.router)
app.include_router(freelancers_router.router)
app.include_router(projects_router.router)
app.include_router(applications_router.router)
app.include_router(submissions_router.router)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    """Map workflow errors to JSON responses carrying their kind."""
    if isinstance(exc, InternalError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.kind, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.kind,
            "detail": exc.message,
        },
    )

@app.get("/")
async def root():
    return {"message": "Welcome to the Freelance Marketplace API"}

def main():
    """Run the FastAPI application."""
    settings = get_settings()
    uvicorn.run(
        "marketplace.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )

if __name__ == "__main__":
    main()
