from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from starlette.exceptions import HTTPException as StarletteHTTPException

from formdesk.api import auth, files, forms, health, submissions, super_admin, users
from formdesk.db.database import create_tables, async_session
from formdesk.core.config import settings, logger
from formdesk.core.middleware import (
    RequestContextMiddleware,
    form_validation_exception_handler,
    global_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from formdesk.forms.exceptions import FormValidationError
from formdesk.services.users import seed_super_admin


async def seed_default_data():
    """Seed the configured super-admin if it doesn't exist"""
    async with async_session() as db:
        user = await seed_super_admin(db)
        await db.commit()
        if user is None:
            logger.info("SUPER_ADMIN_EMAIL/SUPER_ADMIN_PASSWORD not set; no super admin seeded")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await create_tables()
    await seed_default_data()
    yield


app = FastAPI(
    title="Formdesk API",
    description="Backend API for building forms and collecting submissions",
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
app.add_middleware(RequestContextMiddleware)

app.add_exception_handler(FormValidationError, form_validation_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# Include routers
api = settings.API_PREFIX
app.include_router(auth.router, prefix=f"{api}/auth", tags=["Authentication"])
app.include_router(users.router, prefix=f"{api}/users", tags=["Users"])
app.include_router(super_admin.router, prefix=f"{api}/super-admin", tags=["Super Admin"])
app.include_router(forms.router, prefix=api)
app.include_router(submissions.router, prefix=api)
app.include_router(files.router, prefix=api)

# Health / readiness endpoints
app.include_router(health.router, prefix="", tags=["Health"])
