from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from estatehub.base_microservice import AsyncSessionLocal, Base, BaseMicroservice, engine
from estatehub.auth.errors import GeneralErrors, ServiceError
from estatehub.auth.identity import seed_identity
from estatehub.auth.options import get_app_options
from estatehub.auth.router import router as auth_router
from estatehub.auth.user_lookup import router as user_lookup_router
from estatehub.auth.users_router import admin_router, router as users_router

# Create shared base microservice instance
base_service = BaseMicroservice()


async def start_auth_service():
    """Create tables and seed roles and the optional administrator."""
    base_service.log_event("service.startup", {"service": "authorization"})
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    app_options = get_app_options()
    async with AsyncSessionLocal() as session:
        await seed_identity(session, app_options.admin_email, app_options.admin_password)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    await start_auth_service()
    yield
    base_service.log_event("service.shutdown", {"service": "authorization"})
    await engine.dispose()


# Create main FastAPI app with lifespan
app = FastAPI(
    title="EstateHub Authorization API",
    description="Accounts, sessions and tokens for EstateHub",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_app_options().cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    headers = {"WWW-Authenticate": "Bearer"} if exc.error.status == 401 else None
    return base_service.problem_response(exc.error, exc.errors, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(loc) for loc in error["loc"][1:]), "detail": error["msg"]}
        for error in exc.errors()
    ]
    base_service.logger.warning(f"Validation failed on {request.method} {request.url.path}: {errors}")
    return base_service.problem_response(GeneralErrors.validation_failed(), extensions={"errors": errors})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    base_service.log_error(exc, context=f"{request.method} {request.url.path}")
    return base_service.problem_response(GeneralErrors.unexpected())


# Include routers
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(admin_router)
app.include_router(user_lookup_router)


@app.get("/health", tags=["health"])
async def health_check():
    """Overall system health check."""
    return {"status": "ok", "service": "authorization"}


# For running directly with uvicorn
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("estatehub.main:app", host="0.0.0.0", port=8000, reload=True)
