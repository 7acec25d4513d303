"""Error taxonomy shared by the scheduling services and the HTTP layer."""

from datetime import datetime

from fastapi import status


class SchedulingError(Exception):
    """Base class for every failure the scheduling core reports."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        return {'detail': self.message}


class ValidationError(SchedulingError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(SchedulingError):
    """The requested window is not free at commit time."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(
        self,
        message: str,
        occupied_start: datetime | None = None,
        occupied_end: datetime | None = None,
    ):
        super().__init__(message)
        self.occupied_start = occupied_start
        self.occupied_end = occupied_end

    def to_payload(self) -> dict:
        payload = super().to_payload()
        if self.occupied_start is not None and self.occupied_end is not None:
            payload['conflict'] = {
                'start_time': self.occupied_start.isoformat(),
                'end_time': self.occupied_end.isoformat(),
            }
        return payload


class InvalidTransitionError(SchedulingError):
    status_code = status.HTTP_409_CONFLICT


class DependencyError(SchedulingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
