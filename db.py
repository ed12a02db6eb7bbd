from collections.abc import Generator
from typing import Annotated
import logging

from fastapi import Depends
from sqlalchemy import event, text
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine, select

from config import Settings, get_settings
from models import Role, User, UserRole
from security import hash_password

logger = logging.getLogger(__name__)


def _engine_options(settings: Settings) -> dict:
    url = settings.database_url
    options: dict = {"echo": settings.sql_echo}

    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection so every session sees the same in-memory db
            options["poolclass"] = StaticPool
    else:
        options["pool_pre_ping"] = True
        if settings.db_schema:
            options["connect_args"] = {"options": f"-csearch_path={settings.db_schema}"}
    return options


def build_engine(settings: Settings):
    engine = create_engine(settings.database_url, **_engine_options(settings))

    if engine.dialect.name == "sqlite":
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


engine = build_engine(get_settings())


def create_db_and_tables() -> None:
    """Create the schema (PostgreSQL only) and all tables if they don't exist."""
    settings = get_settings()
    if engine.dialect.name == "postgresql" and settings.db_schema:
        with engine.begin() as conn:
            conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{settings.db_schema}"'))
    SQLModel.metadata.create_all(engine)


def seed_reference_data(session: Session) -> None:
    """Insert the fixed user roles and, when configured, a bootstrap regulator account."""
    for role_id, role_name in Role.NAMES.items():
        if session.get(UserRole, role_id) is None:
            session.add(UserRole(role_id=role_id, role_name=role_name))
    session.commit()

    settings = get_settings()
    if settings.admin_cnic and settings.admin_password:
        existing = session.exec(select(User).where(User.user_id == settings.admin_cnic)).first()
        if existing is None:
            session.add(
                User(
                    user_id=settings.admin_cnic,
                    password_hash=hash_password(settings.admin_password),
                    role_id=Role.GOVERNMENT,
                )
            )
            session.commit()
            logger.info("Created bootstrap government account %s", settings.admin_cnic)


def get_session() -> Generator[Session, None, None]:
    """Yield a database session for dependency injection."""
    with Session(engine) as session:
        yield session


SessionDep = Annotated[Session, Depends(get_session)]
