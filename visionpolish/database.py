from sqlalchemy import create_engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from .config import DATABASE_URL, DATABASE_SSLMODE, ENVIRONMENT

# Convert postgresql:// to postgresql+psycopg:// to use psycopg driver instead of psycopg2
if DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+psycopg://", 1)

engine_kwargs = {"echo": False}

if DATABASE_URL.startswith("sqlite"):
    engine_kwargs["connect_args"] = {"check_same_thread": False}
    if ":memory:" in DATABASE_URL or DATABASE_URL in ("sqlite://", "sqlite:///"):
        engine_kwargs["poolclass"] = StaticPool
else:
    schema_name = "preview" if ENVIRONMENT == "preview" else "public"
    engine_kwargs.update(
        connect_args={
            "sslmode": DATABASE_SSLMODE,
            "options": f"-csearch_path={schema_name},public"
        },
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,  # Validates connections before use
        pool_recycle=1800,
        pool_timeout=10,
    )

engine = create_engine(DATABASE_URL, **engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db():
    # Models must be imported so their tables are registered on Base.metadata
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
