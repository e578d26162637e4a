from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from stockdesk.app.core.config import get_settings


def _enable_sqlite_locking(engine: Engine) -> None:
    """
    SQLite (tests / dev local) :
    - active les FK (RESTRICT / CASCADE)
    - BEGIN IMMEDIATE : le verrou d'écriture est pris dès le début de la
      transaction, équivalent du FOR UPDATE Postgres pour la settlement
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # pysqlite : on reprend la main sur BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def make_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        _enable_sqlite_locking(engine)
        return engine
    return create_engine(url, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


engine = make_engine(get_settings().database_url)
SessionLocal = make_session_factory(engine)
