import logging
import time
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from storefront.config import settings
from storefront.models.database import Base, _normalize_database_url, engine, service_engine
from storefront.models import Order  # noqa: F401 - register models

logger = logging.getLogger(__name__)


def _runtime_engines() -> list[tuple[str, Engine]]:
    """Engines the app serves traffic with, labelled by the setting they come from."""
    engines = [("DATABASE_URL", engine)]
    if service_engine is not engine:
        engines.append(("SERVICE_DATABASE_URL", service_engine))
    return engines


def _probe(label: str, target: Engine, retries: int, retry_delay_seconds: int) -> None:
    last_error = None
    for attempt in range(1, retries + 1):
        try:
            with target.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("%s connection established on attempt %s", label, attempt)
            return
        except OperationalError as exc:
            last_error = exc
            logger.warning(
                "%s not reachable yet (attempt %s/%s): %s",
                label,
                attempt,
                retries,
                exc,
            )
            if attempt < retries:
                time.sleep(retry_delay_seconds)

    raise RuntimeError(
        f"Database is unreachable via {label} after {retries} attempts. "
        "Check the URL credentials and ensure the DB server is running."
    ) from last_error


def wait_for_db(retries: int, retry_delay_seconds: int) -> None:
    """Block until both the user-scoped and the webhook credentials can connect."""
    for label, target in _runtime_engines():
        _probe(label, target, retries, retry_delay_seconds)


def init_db():
    wait_for_db(
        retries=settings.DB_CONNECT_RETRIES,
        retry_delay_seconds=settings.DB_CONNECT_RETRY_DELAY_SECONDS,
    )
    # Schema changes need the elevated role; the user-scoped one may lack DDL rights.
    if settings.SERVICE_DATABASE_URL.startswith("sqlite://"):
        Base.metadata.create_all(bind=service_engine)
        return

    run_migrations(settings.SERVICE_DATABASE_URL)


def run_migrations(database_url: str) -> None:
    """Apply Alembic migrations to the latest revision."""
    from alembic import command
    from alembic.config import Config

    project_root = Path(__file__).resolve().parent.parent
    alembic_ini = project_root / "alembic.ini"
    script_location = project_root / "alembic"
    if not alembic_ini.exists() or not script_location.exists():
        raise RuntimeError("Alembic configuration is missing (alembic.ini or alembic/ directory not found).")

    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(script_location))
    config.set_main_option("sqlalchemy.url", _normalize_database_url(database_url))
    logger.info("Running migrations with SERVICE_DATABASE_URL credentials")
    command.upgrade(config, "head")
