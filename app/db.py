from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def create_db_engine(database_url: str) -> Engine:
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # An in-memory database only lives as long as its one connection.
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url, pool_pre_ping=True)


def init_db(engine: Engine) -> None:
    # Register every table on Base.metadata before creating them.
    import app.models.audit_log  # noqa: F401
    import app.models.billing_event  # noqa: F401
    import app.models.subscription  # noqa: F401
    import app.models.tool_history  # noqa: F401
    import app.models.user  # noqa: F401

    Base.metadata.create_all(bind=engine)
