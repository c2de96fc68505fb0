from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base
from notebook_rag.core.config import settings

SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

connect_args = {}
if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    echo=False,
    connect_args=connect_args,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db(bind=None):
    """
    Creates all tables. On PostgreSQL the pgvector extension is enabled first.
    """
    # Register models with Base before create_all
    from notebook_rag.models import sql_models, vector_models  # noqa: F401

    bind = bind or engine
    if bind.dialect.name == "postgresql":
        with bind.connect() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
            conn.commit()
    Base.metadata.create_all(bind=bind)


# Dependency to get a DB Session
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
