from sqlalchemy.orm import Session

from telehealth.core.errors import NotFoundError
from telehealth.models.professional import ProfessionalProfile

PROFESSIONAL_UNAVAILABLE_MESSAGE = 'Professional not found or not available.'


def get_bookable_professional(db: Session, professional_id: int, lock: bool = False) -> ProfessionalProfile:
    """Return the approved, verified profile of ``professional_id``.

    With ``lock`` the profile row is held ``FOR UPDATE`` until the surrounding
    transaction ends, which serializes booking writers for one professional.
    """
    query = db.query(ProfessionalProfile).filter(ProfessionalProfile.user_id == professional_id)
    if lock:
        query = query.with_for_update()

    profile = query.first()
    if profile is None or not profile.is_bookable:
        raise NotFoundError(PROFESSIONAL_UNAVAILABLE_MESSAGE)

    return profile


def get_profiles_by_user_ids(db: Session, user_ids: set[int]) -> dict[int, ProfessionalProfile]:
    if not user_ids:
        return {}

    profiles = db.query(ProfessionalProfile).filter(ProfessionalProfile.user_id.in_(user_ids)).all()
    return {profile.user_id: profile for profile in profiles}
