from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from webnav.config import get_settings
from webnav.models import Property, utcnow


class PropertyStore(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        raise NotImplementedError


def property_engine(db_path: Optional[str] = None) -> Engine:
    """SQLite engine for the property file, with the ``properties`` table in place."""
    db_file = Path(db_path or get_settings().db_path)
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_file}", connect_args={"check_same_thread": False})

    @event.listens_for(engine, "connect")
    def _wal_mode(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.close()

    SQLModel.metadata.create_all(engine, tables=[Property.__table__])
    return engine


class SqlPropertyStore(PropertyStore):
    """Key/value properties kept in the ``properties`` table.

    Cookies saved here outlive the process; two processes sharing one key
    simply overwrite each other.
    """

    def __init__(self, engine: Optional[Engine] = None):
        self._engine = engine or property_engine()

    def get(self, key: str) -> Optional[str]:
        with Session(self._engine) as session:
            prop = session.get(Property, key)
            return prop.value if prop is not None else None

    def set(self, key: str, value: str) -> None:
        with Session(self._engine) as session:
            prop = session.get(Property, key)
            if prop is None:
                prop = Property(key=key, value=value)
            else:
                prop.value = value
                prop.updated_at = utcnow()
            session.add(prop)
            session.commit()

    def close(self) -> None:
        self._engine.dispose()
