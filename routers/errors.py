"""
Domain error → HTTP status mapping shared by the routers
"""

from fastapi import HTTPException, status

from generation.exceptions import (
    ArtifactNotFound, InvalidTransition, JobNotFound, MaterialNotFound,
    PersistenceError, QuestionBankError, QuotaConfigInvalid, RemarksTooShort,
)

# Checked in order; RemarksTooShort must precede its parent InvalidTransition
STATUS_BY_ERROR = (
    (RemarksTooShort, 422),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (QuotaConfigInvalid, 422),
    (MaterialNotFound, status.HTTP_404_NOT_FOUND),
    (JobNotFound, status.HTTP_404_NOT_FOUND),
    (ArtifactNotFound, status.HTTP_404_NOT_FOUND),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def http_error(exc: QuestionBankError) -> HTTPException:
    for error_cls, code in STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return HTTPException(status_code=code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
