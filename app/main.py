import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import init_db
from app.routers import auth, health, users
from app.services.hashing import hasher
from app.services.otp import otp_ledger
from app.services.users import UserConflictError, user_store

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Civic Reporter Auth")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix="/api")
app.include_router(auth.router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(users.me_router, prefix="/api")
app.include_router(auth.router)  # Compatibility for clients calling /auth/* without /api.


def seed_superadmin() -> None:
    if not settings.seed_email or not settings.seed_password:
        return
    if user_store.find_by_email(settings.seed_email) is not None:
        return
    try:
        user_store.create(
            name=settings.seed_name or "Super Admin",
            email=settings.seed_email,
            password_hash=hasher.hash(settings.seed_password),
            role="superadmin",
            email_verified=True,
        )
    except UserConflictError:
        return
    LOGGER.info("Seeded superadmin %s", settings.seed_email)


@app.on_event("startup")
def startup() -> None:
    init_db()
    otp_ledger.purge_expired()
    seed_superadmin()


@app.get("/")
def root():
    return {"status": "Backend running"}
