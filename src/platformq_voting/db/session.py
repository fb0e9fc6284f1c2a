from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .models import Base


def create_session_factory(database_url: str, **engine_kwargs) -> sessionmaker:
    engine = create_engine(database_url, **engine_kwargs)
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine):
    """Create the voting tables if they do not exist"""
    Base.metadata.create_all(bind=engine)
