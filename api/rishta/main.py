import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from . import repo
from .auth.security import hash_password
from .config import ADMIN_BOOTSTRAP_EMAIL, ADMIN_BOOTSTRAP_PASSWORD, ALLOWED_ORIGINS, DEFAULT_PACKAGES
from .database import Base, SessionLocal, engine
from .errors import DomainError, TransientIO
from .routes import include_modular_routers
from .services.quota import seed_default_packages
from .services.storage import PUBLIC_BUCKET, storage

logger = logging.getLogger(__name__)

app = FastAPI(title="Rishta API")
include_modular_routers(app)

app.mount(
    f"/storage/{PUBLIC_BUCKET}",
    StaticFiles(directory=str(storage.bucket_dir(PUBLIC_BUCKET))),
    name="profile-pictures",
)

# Cookie auth needs explicit origins; "*" is rejected with credentials.
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"[api] {exc.code} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"[api] {exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(OperationalError)
def operational_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error(f"[api] database unavailable on {request.method} {request.url.path}: {exc.orig!r}")
    err = TransientIO("Service temporarily unavailable, please retry")
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


def run_migrations() -> None:
    # Importing models registers every table on Base.metadata.
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def wait_for_db(max_attempts: int = 20, delay_seconds: float = 1.5) -> None:
    last_err: Exception | None = None
    for _ in range(max_attempts):
        try:
            with SessionLocal() as db:
                db.execute(text("SELECT 1"))
                db.commit()
            return
        except OperationalError as exc:
            last_err = exc
            logger.warning(f"[startup] database not ready: {exc.orig!r}")
            time.sleep(delay_seconds)
    if last_err:
        raise last_err


def bootstrap_admin() -> None:
    if not ADMIN_BOOTSTRAP_PASSWORD:
        logger.info("[startup] ADMIN_BOOTSTRAP_PASSWORD unset, skipping admin bootstrap")
        return
    admin = repo.ensure_bootstrap_admin(ADMIN_BOOTSTRAP_EMAIL, hash_password(ADMIN_BOOTSTRAP_PASSWORD))
    if admin:
        logger.info(f"[startup] admin account ready email={ADMIN_BOOTSTRAP_EMAIL}")


@app.on_event("startup")
def on_startup() -> None:
    wait_for_db()
    run_migrations()
    bootstrap_admin()
    seed_default_packages(DEFAULT_PACKAGES)


@app.get("/health")
def health() -> dict[str, str]:
    with SessionLocal() as db:
        db.execute(text("SELECT 1"))
    return {"status": "ok"}
