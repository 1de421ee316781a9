"""
Engine and session handling for the booking database.

The booking core runs on SQLite out of the box (a file next to the package,
or ``sqlite:///:memory:`` in tests) and on MySQL/MariaDB or PostgreSQL when
``DATABASE_URL`` or the ``DB_*`` variables point at a server. Every
capacity write goes through sessions handed out here.
"""

import os
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Dict, Any, Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool, QueuePool

from .models import create_all_tables

logger = logging.getLogger(__name__)

# driver, default port, default user for each server backend
SERVER_BACKENDS = {
    'mysql': ('mysql+pymysql', '3306', 'root'),
    'mariadb': ('mysql+pymysql', '3306', 'root'),
    'postgresql': ('postgresql', '5432', 'postgres'),
}

MEMORY_SQLITE_URLS = ('sqlite://', 'sqlite+pysqlite://')


def url_from_environment() -> str:
    """Resolve the database URL from ``DATABASE_URL`` or the ``DB_*`` parts."""
    explicit = os.getenv('DATABASE_URL')
    if explicit:
        return explicit

    backend = os.getenv('DB_TYPE', 'sqlite').lower()
    if backend == 'sqlite':
        filename = os.getenv('DB_NAME', 'helitour.db')
        return f"sqlite:///{Path(__file__).parent.parent / filename}"

    if backend not in SERVER_BACKENDS:
        raise ValueError(f"Unsupported database type: {backend}")

    driver, default_port, default_user = SERVER_BACKENDS[backend]
    user = os.getenv('DB_USER', default_user)
    password = os.getenv('DB_PASSWORD', '')
    host = os.getenv('DB_HOST', 'localhost')
    port = os.getenv('DB_PORT', default_port)
    name = os.getenv('DB_NAME', 'helitour')

    url = f"{driver}://{user}:{password}@{host}:{port}/{name}"
    if driver.startswith('mysql'):
        url += "?charset=utf8mb4"
    return url


def backend_of(url: str) -> str:
    for prefix in ('sqlite', 'mysql', 'postgresql'):
        if url.startswith(prefix):
            return prefix
    return 'unknown'


class DatabaseConfig:
    """
    Owns the SQLAlchemy engine and session factory for one database.

    The engine is created lazily on first use. In-memory SQLite is pinned
    to a single shared connection, otherwise each session would open its
    own empty database. File-backed SQLite keeps an ordinary pool so that
    concurrent writers really race on the capacity ledger.
    """

    def __init__(self, database_url: Optional[str] = None, echo: bool = False):
        self.database_url = database_url or url_from_environment()
        self.echo = echo
        self.db_type = backend_of(self.database_url)
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker] = None
        self._is_initialized = False
        self.engine_kwargs = self._engine_options()

        logger.info(f"Database configured for {self.db_type}")

    @property
    def is_memory_sqlite(self) -> bool:
        if self.db_type != 'sqlite':
            return False
        return ':memory:' in self.database_url or self.database_url in MEMORY_SQLITE_URLS

    def _engine_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {'echo': self.echo, 'pool_pre_ping': True}

        if self.db_type == 'sqlite':
            options['connect_args'] = {'check_same_thread': False, 'timeout': 30}
            if self.is_memory_sqlite:
                options['poolclass'] = StaticPool
            return options

        if self.db_type in ('mysql', 'postgresql'):
            options.update(
                poolclass=QueuePool,
                pool_size=int(os.getenv('DB_POOL_SIZE', '10')),
                max_overflow=int(os.getenv('DB_MAX_OVERFLOW', '20')),
                pool_timeout=int(os.getenv('DB_POOL_TIMEOUT', '30')),
                pool_recycle=int(os.getenv('DB_POOL_RECYCLE', '3600')),
            )
        if self.db_type == 'mysql':
            options['connect_args'] = {'charset': 'utf8mb4', 'connect_timeout': 30}
        return options

    def _install_pragmas(self) -> None:
        is_sqlite = self.db_type == 'sqlite'
        use_wal = is_sqlite and not self.is_memory_sqlite

        @event.listens_for(self.engine, "connect")
        def on_connect(dbapi_connection, connection_record):
            if not is_sqlite:
                return
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if use_wal:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    def initialize(self) -> None:
        """Create the engine, apply connection pragmas and verify connectivity."""
        if self._is_initialized:
            return

        try:
            self.engine = create_engine(self.database_url, **self.engine_kwargs)
            self._install_pragmas()
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(f"Could not open {self.db_type} database: {e}")
            raise SQLAlchemyError(f"Database initialization failed: {e}") from e

        # Committed rows stay readable after the session that wrote them closes
        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )
        self._is_initialized = True
        logger.info(f"Database engine ready ({self.db_type})")

    def create_tables(self) -> None:
        self.initialize()
        try:
            create_all_tables(self.engine)
        except Exception as e:
            logger.error(f"Could not create booking tables: {e}")
            raise SQLAlchemyError(f"Table creation failed: {e}") from e
        logger.info("Booking tables ready")

    def get_session(self) -> Session:
        self.initialize()
        return self.SessionLocal()

    @contextmanager
    def get_session_context(self) -> Iterator[Session]:
        """Yield a session that commits on success and rolls back on any error."""
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.debug(f"Session rolled back: {e}")
            raise
        finally:
            session.close()

    def test_connection(self) -> bool:
        try:
            self.initialize()
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(f"Database connectivity check failed: {e}")
            return False
        return True

    def get_connection_info(self) -> Dict[str, Any]:
        # Credentials live before the '@'
        location = self.database_url.rsplit('@', 1)[-1]
        return {
            'database_type': self.db_type,
            'database_url': location,
            'is_initialized': self._is_initialized,
            'echo_enabled': self.echo,
        }

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Database engine disposed")


__all__ = [
    'DatabaseConfig',
    'url_from_environment',
]
