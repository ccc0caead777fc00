from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from storefront.config import settings


def _normalize_database_url(database_url: str) -> str:
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+psycopg://", 1)

    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+psycopg://", 1)

    return database_url


engine = create_engine(_normalize_database_url(settings.DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Webhook handlers have no user session, so they use the elevated credentials.
if settings.SERVICE_DATABASE_URL == settings.DATABASE_URL:
    service_engine = engine
else:
    service_engine = create_engine(_normalize_database_url(settings.SERVICE_DATABASE_URL))
ServiceSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=service_engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_service_db():
    db = ServiceSessionLocal()
    try:
        yield db
    finally:
        db.close()
