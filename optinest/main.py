from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from optinest.core.config import settings
from optinest.core.errors import register_exception_handlers
from optinest.core.logging import configure_logging
from optinest.routers import admin, analytics, auth, media, newsletter, pages, public


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    # Raises in production when SECRET_KEY is missing
    settings.auth_secret
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    lifespan=lifespan,
    description="Content and admin API for the Optinest blog",
)

register_exception_handlers(app)


@app.get("/")
def read_root():
    return {"message": "Welcome to Optinest API. Visit /docs for Swagger UI."}


app.include_router(public.router, prefix="/api/v1", tags=["public"])
app.include_router(analytics.router, prefix="/api/analytics", tags=["analytics"])
app.include_router(media.router, prefix="/api/media", tags=["media"])
app.include_router(newsletter.router, prefix="/api/newsletter", tags=["newsletter"])
app.include_router(auth.router, prefix="/api/admin", tags=["auth"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["admin"])
app.include_router(pages.router, tags=["pages"])

# Add CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
