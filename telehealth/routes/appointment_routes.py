from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from telehealth.auth.dependencies import get_current_user, require_patient
from telehealth.core import config
from telehealth.core.rate_limit import daily_booking_allowed
from telehealth.database import ensure_database_ready, get_db
from telehealth.models.appointment import Modality
from telehealth.models.user import User
from telehealth.scheduling import lifecycle
from telehealth.scheduling.conflict_guard import reserve
from telehealth.scheduling.queries import DEFAULT_PAGE_SIZE, AppointmentFilter, list_appointments

router = APIRouter(tags=['appointments'])


class CreateAppointmentRequest(BaseModel):
    professional_id: int
    start_time: datetime
    duration_minutes: int
    modality: str
    reason: str | None = None

    @field_validator('modality')
    @classmethod
    def validate_modality(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {modality.value for modality in Modality}:
            raise ValueError('Modality must be virtual or in_person.')
        return normalized

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        return normalized or None


class CompleteAppointmentRequest(BaseModel):
    notes: str | None = None


class CancelAppointmentRequest(BaseModel):
    reason: str | None = None


class UpdateNotesRequest(BaseModel):
    notes: str | None = None


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    professional_id: int
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    modality: str
    status: str
    reason: str | None = None
    professional_notes: str | None = None
    cancellation_reason: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProfessionalSummaryResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    specialties: list[str]
    session_rate: float | None = None

    class Config:
        from_attributes = True


class AppointmentWithProfessionalResponse(AppointmentResponse):
    professional: ProfessionalSummaryResponse


class PaginationResponse(BaseModel):
    total: int
    page: int
    page_size: int
    total_pages: int


class AppointmentCountsResponse(BaseModel):
    upcoming: int
    past: int
    cancelled: int
    total: int


class AppointmentListResponse(BaseModel):
    appointments: list[AppointmentWithProfessionalResponse]
    pagination: PaginationResponse
    counts: AppointmentCountsResponse


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: User = Depends(require_patient),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    if not daily_booking_allowed(db, current_user.id):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f'Daily booking limit reached ({config.MAX_DAILY_BOOKINGS} maximum).',
        )

    return reserve(
        db,
        patient_id=current_user.id,
        professional_id=data.professional_id,
        start_time=data.start_time,
        duration_minutes=data.duration_minutes,
        modality=data.modality,
        reason=data.reason,
    )


@router.get('', response_model=AppointmentListResponse)
def list_my_appointments(
    appointment_filter: AppointmentFilter = Query(default=AppointmentFilter.ALL, alias='filter'),
    page: int = Query(default=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    result = list_appointments(
        db,
        caller_id=current_user.id,
        caller_role=current_user.role,
        appointment_filter=appointment_filter,
        page=page,
        page_size=page_size,
    )
    return AppointmentListResponse(
        appointments=[
            AppointmentWithProfessionalResponse(
                **AppointmentResponse.model_validate(item.appointment).model_dump(),
                professional=ProfessionalSummaryResponse.model_validate(item.professional),
            )
            for item in result.items
        ],
        pagination=PaginationResponse(
            total=result.total,
            page=result.page,
            page_size=result.page_size,
            total_pages=result.total_pages,
        ),
        counts=AppointmentCountsResponse(**result.counts),
    )


@router.post('/{appointment_id}/confirm', response_model=AppointmentResponse)
def confirm_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return lifecycle.confirm(db, appointment_id, current_user.id)


@router.post('/{appointment_id}/complete', response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: int,
    data: CompleteAppointmentRequest | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return lifecycle.complete(db, appointment_id, current_user.id, notes=data.notes if data else None)


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    data: CancelAppointmentRequest | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return lifecycle.cancel(db, appointment_id, current_user.id, reason=data.reason if data else None)


@router.post('/{appointment_id}/no-show', response_model=AppointmentResponse)
def mark_appointment_no_show(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return lifecycle.mark_no_show(db, appointment_id, current_user.id)


@router.patch('/{appointment_id}/notes', response_model=AppointmentResponse)
def update_appointment_notes(
    data: UpdateNotesRequest,
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return lifecycle.update_professional_notes(db, appointment_id, current_user.id, data.notes)
