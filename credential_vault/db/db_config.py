"""
Engine and session management.

One ``DatabaseManager`` per process, registered with ``set_db_manager`` or
``initialize_db``. Sessions are created with ``expire_on_commit=False``, so
repositories re-read rows explicitly when they need fresh state.
"""

from typing import Any, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, configure_mappers, declarative_base, scoped_session, sessionmaker

from ..config import DatabaseConfig, get_config
from ..exceptions import ErrorCode, ServiceError
from ..utils.logger import get_logger

Base: Any = declarative_base()


class DatabaseManager:
    def __init__(self, config: DatabaseConfig, development_mode: bool = False):
        self.config = config
        self.development_mode = development_mode
        self.engine = create_engine(config.connection_string, **self._engine_options())
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        self.scoped_session = scoped_session(self.session_factory)

    @property
    def is_sqlite(self) -> bool:
        return self.config.connection_string.startswith("sqlite")

    def _engine_options(self) -> dict:
        options: dict = {"echo": self.config.echo}
        if self.is_sqlite:
            # Tests share one in-memory database across threads
            options["connect_args"] = {"check_same_thread": False}
        else:
            options.update(
                pool_size=self.config.pool_size,
                max_overflow=self.config.max_overflow,
                pool_timeout=self.config.pool_timeout,
                pool_pre_ping=True,
            )
        return options

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop every table. Refused outside development mode."""
        if not self.development_mode:
            raise ServiceError(
                "Refusing to drop tables outside development mode",
                error_code=ErrorCode.CONFIGURATION_ERROR,
                operation="drop_tables",
            )
        Base.metadata.drop_all(self.engine)

    def get_session(self) -> Session:
        """Thread-scoped session."""
        return self.scoped_session()

    def new_session(self) -> Session:
        """A session outside the scoped registry, for concurrent-writer scenarios."""
        return self.session_factory()

    def close_session(self, session: Optional[Session] = None) -> None:
        if session is None:
            self.scoped_session.remove()
        else:
            session.close()

    def close(self) -> None:
        self.scoped_session.remove()
        self.engine.dispose()

    def __repr__(self) -> str:
        # No URL: it may contain a password
        return f"DatabaseManager(dialect='{self.engine.dialect.name}')"


def get_development_config() -> DatabaseConfig:
    return DatabaseConfig(connection_string="sqlite:///:memory:")


def import_all_models():
    """Register every model on ``Base.metadata``."""
    from .db_agent_models import Agent  # noqa
    from .db_credential_models import UserAgentCredential  # noqa
    from .db_payment_models import CreditPurchase, UserCreditBalance  # noqa
    from .db_platform_models import PlatformDefinition  # noqa

    configure_mappers()


def init_db(db_manager: DatabaseManager) -> None:
    get_logger().info("Creating vault tables", extra={"dialect": db_manager.engine.dialect.name})
    import_all_models()
    db_manager.create_tables()


_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    if _db_manager is None:
        raise ServiceError(
            "No database manager; call initialize_db() or set_db_manager() first",
            error_code=ErrorCode.CONFIGURATION_ERROR,
            operation="get_db_manager",
        )
    return _db_manager


def set_db_manager(manager: DatabaseManager) -> None:
    global _db_manager
    _db_manager = manager


def initialize_db(
    config: Optional[DatabaseConfig] = None, development_mode: bool = False
) -> DatabaseManager:
    """
    Build the process-wide manager and create missing tables.

    ``config`` defaults to the application database settings.
    """
    manager = DatabaseManager(config or get_config().database, development_mode=development_mode)
    init_db(manager)
    set_db_manager(manager)
    return manager


def close_db() -> None:
    global _db_manager
    if _db_manager is not None:
        _db_manager.close()
    _db_manager = None
