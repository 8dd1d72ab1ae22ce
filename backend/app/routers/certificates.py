from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from app.core.security import get_current_user
from app.models.user import User
from app.routers.views import certificate_view, parse_uuid
from app.schemas.certificate import (
    CertificateOut,
    CertificateVerification,
    IssueCertificateRequest,
    IssueCertificateResponse,
)
from app.services.certificates import (
    CertificateAlreadyIssued,
    CertificateNotFound,
    CertificateService,
    CourseNotCompleted,
    CourseNotFound,
)
from app.services.store import LearningStore, get_store

router = APIRouter(prefix="/certificates", tags=["certificates"])


@router.post("", response_model=IssueCertificateResponse)
def issue_certificate(
    body: IssueCertificateRequest,
    store: LearningStore = Depends(get_store),
    user: User = Depends(get_current_user),
):
    cid = parse_uuid(body.course_id, field="course_id")
    try:
        issued = CertificateService(store).issue(user_id=user.id, course_id=cid)
    except CourseNotFound as e:
        raise HTTPException(status_code=404, detail="course not found") from e
    except CertificateAlreadyIssued as e:
        raise HTTPException(
            status_code=409,
            detail={
                "error_code": "certificate_already_issued",
                "error_message": "certificate already issued for this course",
                "certificate_number": e.certificate.certificate_number,
            },
        ) from e
    except CourseNotCompleted as e:
        raise HTTPException(
            status_code=400,
            detail={"error_code": "course_not_completed", "error_message": "complete every module of the course first"},
        ) from e

    return {
        "certificate": certificate_view(issued.certificate),
        "xp_awarded": issued.xp_awarded,
        "achievements": [a.name for a in issued.achievements],
    }


@router.get("/me", response_model=list[CertificateOut])
def my_certificates(store: LearningStore = Depends(get_store), user: User = Depends(get_current_user)):
    return [certificate_view(c) for c in CertificateService(store).for_user(user.id)]


@router.get("/verify/{number}", response_model=CertificateVerification)
def verify_certificate(number: str, store: LearningStore = Depends(get_store)):
    try:
        data = CertificateService(store).verify(number)
    except CertificateNotFound as e:
        raise HTTPException(status_code=404, detail="certificate not found") from e

    level = data["course_level"]
    return {
        **data,
        "valid": True,
        "course_level": getattr(level, "value", level),
        "issued_at": data["issued_at"].isoformat() if data["issued_at"] else "",
    }
