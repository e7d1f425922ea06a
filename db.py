from contextlib import contextmanager
from pathlib import Path
import logging

from sqlalchemy import create_engine, Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

import config
from models.base import Base
"""
Imports of these models are needed to correctly create tables in the database.
For more information see https://stackoverflow.com/questions/7478403/sqlalchemy-classes-across-files
"""
from models.cart import CartLine

logger = logging.getLogger(__name__)

# SQL echo stays off; statements would flood the logs on every cart edit
sql_echo = False


def create_cart_engine(url: str | None = None) -> Engine:
    """
    Create the engine backing the durable cart store and make sure the tables exist.

    Args:
        url: SQLAlchemy URL (defaults to config.CART_DB_URL)

    Returns:
        Engine with the cart schema created
    """
    url = url or config.CART_DB_URL

    if url in ("sqlite://", "sqlite:///:memory:"):
        # In-memory SQLite: one shared connection, otherwise every session sees an empty DB
        engine = create_engine(
            url,
            echo=sql_echo,
            connect_args={'check_same_thread': False},
            poolclass=StaticPool
        )
    else:
        if url.startswith("sqlite:///"):
            db_path = Path(url.removeprefix("sqlite:///"))
            if db_path.parent.exists() is False:
                db_path.parent.mkdir(parents=True)
        engine = create_engine(url, echo=sql_echo)

    Base.metadata.create_all(engine)
    logger.info(f"Cart storage ready ({engine.url.get_backend_name()})")
    return engine


def create_session_maker(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(engine, expire_on_commit=False)


@contextmanager
def get_db_session(session_maker: sessionmaker[Session]):
    session = session_maker()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
