import logging
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from telehealth.core import config
from telehealth.core.errors import DependencyError

logger = logging.getLogger(__name__)


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(
    config.DATABASE_URL,
    echo=config.DATABASE_ECHO,
    **_engine_options(config.DATABASE_URL),
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_schedule_schema_checked = False
_appointment_schema_checked = False

ACTIVE_APPOINTMENT_UNIQUE_INDEX = (
    "CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_professional_active_start "
    "ON appointments(professional_id, start_time) "
    "WHERE status IN ('pending', 'confirmed')"
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def snapshot_read(db: Session) -> None:
    """Pin the session's next transaction to a single consistent snapshot.

    Must run before the first query of the transaction. SQLite transactions
    already read from one snapshot, so only PostgreSQL needs the hint.
    """
    if db.get_bind().dialect.name == "postgresql":
        db.connection(execution_options={"isolation_level": "REPEATABLE READ"})


def ensure_schedule_schema() -> None:
    global _schedule_schema_checked

    if _schedule_schema_checked:
        return

    with _schema_lock:
        if _schedule_schema_checked:
            return

        inspector = inspect(engine)

        if 'schedule_blocks' not in inspector.get_table_names():
            _schedule_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('schedule_blocks')}
        migration_steps = [
            ('session_duration', 'ALTER TABLE schedule_blocks ADD COLUMN session_duration INTEGER DEFAULT 60'),
            ('active', 'ALTER TABLE schedule_blocks ADD COLUMN active BOOLEAN DEFAULT TRUE'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    logger.info('Adding column schedule_blocks.%s', column_name)
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_schedule_blocks_professional_day '
                    'ON schedule_blocks(professional_id, day_of_week)'
                )
            )

        _schedule_schema_checked = True


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('reason', 'ALTER TABLE appointments ADD COLUMN reason VARCHAR'),
            ('professional_notes', 'ALTER TABLE appointments ADD COLUMN professional_notes VARCHAR'),
            ('cancellation_reason', 'ALTER TABLE appointments ADD COLUMN cancellation_reason VARCHAR'),
            ('updated_at', 'ALTER TABLE appointments ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    logger.info('Adding column appointments.%s', column_name)
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_professional_start '
                    'ON appointments(professional_id, start_time)'
                )
            )
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_patient_start '
                    'ON appointments(patient_id, start_time)'
                )
            )
            connection.execute(text(ACTIVE_APPOINTMENT_UNIQUE_INDEX))

        _appointment_schema_checked = True


def ensure_database_ready() -> None:
    try:
        ensure_schedule_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        logger.exception('Schema check failed. Check DATABASE_URL and database credentials.')
        raise DependencyError('Database unavailable. Verify DATABASE_URL and database credentials.') from exc
