import logging

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError

from telehealth.auth import jwt_handler
from telehealth.database import SessionLocal
from telehealth.models.user import ROLE_ADMIN, ROLE_PATIENT, ROLE_PROFESSIONAL, User

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> User:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
    except SQLAlchemyError as exc:
        logger.exception("Resolving caller identity failed")
        raise HTTPException(status_code=503, detail="Identity store unavailable.") from exc
    finally:
        db.close()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")

    # Tokens minted before a role change stop working.
    token_role = payload.get("role")
    if token_role is not None and token_role != user.role:
        raise HTTPException(status_code=401, detail="Token role no longer matches account")
    return user


def require_role(*roles: str):
    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(status_code=403, detail="Insufficient role for this operation.")
        return current_user

    return dependency


require_patient = require_role(ROLE_PATIENT)
require_professional = require_role(ROLE_PROFESSIONAL, ROLE_ADMIN)
