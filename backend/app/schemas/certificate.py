from __future__ import annotations

from pydantic import BaseModel


class CertificateOut(BaseModel):
    id: str
    course_id: str
    certificate_number: str
    verification_url: str | None
    issued_at: str


class IssueCertificateRequest(BaseModel):
    course_id: str


class IssueCertificateResponse(BaseModel):
    certificate: CertificateOut
    xp_awarded: int
    achievements: list[str] = []


class CertificateVerification(BaseModel):
    valid: bool = True
    certificate_number: str
    user_name: str | None
    course_title: str | None
    course_level: str | None
    issued_at: str
    verification_url: str | None = None
