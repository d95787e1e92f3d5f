import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .database import SessionLocal, init_db
from .models import Category
from .routes import rankings, tournaments

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Tournament Scoring API",
    version="1.0.0",
    description=(
        "Billiards federation scoring: tournament positions, bonus rules, "
        "position points and season rankings."
    ),
)

cors_origins = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:5173,http://127.0.0.1:5173",
)
allow_origins = [origin.strip() for origin in cors_origins.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

init_db()


def should_auto_seed() -> bool:
    value = os.getenv("AUTO_SEED_ON_EMPTY", "true").strip().lower()
    return value in {"1", "true", "yes", "on"}


def seed_if_empty() -> None:
    if not should_auto_seed():
        return

    db = SessionLocal()
    try:
        has_categories = db.query(Category.id).first() is not None
    finally:
        db.close()

    if has_categories:
        return

    from seed import seed

    logger.info("[SEED] Empty database, loading demo configuration")
    seed(demo_tournament=False)


seed_if_empty()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(tournaments.router, prefix="/tournaments")
app.include_router(rankings.router, prefix="/rankings")
