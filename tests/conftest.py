import os
from datetime import datetime, time, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from telehealth.database import Base  # noqa: E402
from telehealth.models.appointment import Appointment  # noqa: E402
from telehealth.models.professional import ProfessionalProfile  # noqa: E402
from telehealth.models.schedule import ScheduleBlock  # noqa: E402
from telehealth.models.user import User  # noqa: E402

TABLES = [User.__table__, ProfessionalProfile.__table__, ScheduleBlock.__table__, Appointment.__table__]


@pytest.fixture
def db():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=TABLES)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))
        engine.dispose()


@pytest.fixture
def file_session_factory(tmp_path):
    engine = create_engine(
        f'sqlite:///{tmp_path / "race.db"}',
        connect_args={'check_same_thread': False, 'timeout': 30},
    )
    Base.metadata.create_all(bind=engine, tables=TABLES)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


@pytest.fixture
def make_user():
    def factory(session, email: str, role: str = 'patient', first_name: str = 'Test', last_name: str = 'User') -> User:
        user = User(email=email, role=role, first_name=first_name, last_name=last_name)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return factory


@pytest.fixture
def make_professional(make_user):
    def factory(
        session,
        email: str = 'doctor@example.com',
        approved: bool = True,
        documents_verified: bool = True,
        specialties: str = 'anxiety, depression',
        session_rate: str = '45.00',
    ) -> User:
        professional = make_user(session, email, role='professional', first_name='Ada', last_name='Lopez')
        session.add(
            ProfessionalProfile(
                user_id=professional.id,
                approved=approved,
                documents_verified=documents_verified,
                specialties=specialties,
                session_rate=Decimal(session_rate),
            )
        )
        session.commit()
        return professional

    return factory


@pytest.fixture
def add_block():
    def factory(session, professional_id: int, day: int, start: time, end: time, active: bool = True) -> ScheduleBlock:
        block = ScheduleBlock(
            professional_id=professional_id,
            day_of_week=day,
            start_time=start,
            end_time=end,
            session_duration=60,
            active=active,
        )
        session.add(block)
        session.commit()
        session.refresh(block)
        return block

    return factory


@pytest.fixture
def add_appointment():
    def factory(
        session,
        patient_id: int,
        professional_id: int,
        start: datetime,
        duration: int = 30,
        status: str = 'confirmed',
        created_at: datetime | None = None,
    ) -> Appointment:
        appointment = Appointment(
            patient_id=patient_id,
            professional_id=professional_id,
            start_time=start,
            end_time=start + timedelta(minutes=duration),
            duration_minutes=duration,
            modality='virtual',
            status=status,
        )
        if created_at is not None:
            appointment.created_at = created_at
            appointment.updated_at = created_at
        session.add(appointment)
        session.commit()
        session.refresh(appointment)
        return appointment

    return factory
