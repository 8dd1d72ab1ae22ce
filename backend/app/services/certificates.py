from __future__ import annotations

import logging
import secrets
import string
import time
import uuid
from dataclasses import dataclass, field
from typing import List

from app.core.config import settings
from app.models.achievement import Achievement
from app.models.audit import LearningEventType
from app.models.certificate import Certificate
from app.services.achievements import AchievementEngine
from app.services.store import LearningStore
from app.services.xp import award_xp

logger = logging.getLogger(__name__)

_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


class CourseNotFound(Exception):
    pass


class CourseNotCompleted(Exception):
    pass


class CertificateAlreadyIssued(Exception):
    def __init__(self, certificate: Certificate):
        super().__init__(certificate.certificate_number)
        self.certificate = certificate


class CertificateNotFound(Exception):
    pass


@dataclass
class IssuedCertificate:
    certificate: Certificate
    xp_awarded: int = 0
    achievements: List[Achievement] = field(default_factory=list)


def new_certificate_number() -> str:
    suffix = "".join(secrets.choice(_NUMBER_ALPHABET) for _ in range(6))
    return f"DIGI-{int(time.time() * 1000)}-{suffix}"


def verification_url_for(number: str) -> str:
    base = (settings.public_base_url or "").rstrip("/")
    return f"{base}/certificates/verify/{number}"


class CertificateService:
    def __init__(self, store: LearningStore):
        self.store = store
        self.achievements = AchievementEngine(store)

    def is_eligible(self, user_id: uuid.UUID, course_id: uuid.UUID) -> bool:
        """Every active module of the course carries a completed module record. Empty courses never qualify."""
        modules = list(self.store.modules_by_course(course_id))
        if not modules:
            return False
        done = self.store.completed_module_ids(user_id, course_id)
        return all(m.id in done for m in modules)

    def issue(self, *, user_id: uuid.UUID, course_id: uuid.UUID) -> IssuedCertificate:
        course = self.store.get_course(course_id)
        if course is None or not course.is_active:
            raise CourseNotFound(str(course_id))

        existing = self.store.get_certificate(user_id, course_id)
        if existing is not None:
            raise CertificateAlreadyIssued(existing)

        if not self.is_eligible(user_id, course_id):
            raise CourseNotCompleted(str(course_id))

        number = new_certificate_number()
        cert = Certificate(
            user_id=user_id,
            course_id=course_id,
            certificate_number=number,
            verification_url=verification_url_for(number),
        )
        if not self.store.add_certificate(cert):
            # Lost a race against a concurrent issue for the same course.
            self.store.rollback()
            existing = self.store.get_certificate(user_id, course_id)
            if existing is None:
                raise RuntimeError("certificate insert rejected without a conflicting row")
            raise CertificateAlreadyIssued(existing)

        xp = int(course.xp_reward or settings.default_course_xp)
        award_xp(self.store, user_id=user_id, xp=xp)
        self.store.add_event(
            user_id,
            LearningEventType.certificate_issued,
            course.id,
            meta={"certificate_number": number},
        )

        unlocked = self.achievements.check_course_completion(user_id, course.level)
        self.store.commit()

        logger.info("certificate issued user=%s course=%s number=%s", user_id, course.id, number)
        return IssuedCertificate(
            certificate=cert,
            xp_awarded=xp + sum(int(a.xp_reward or 0) for a in unlocked),
            achievements=unlocked,
        )

    def verify(self, number: str) -> dict:
        cert = self.store.get_certificate_by_number(str(number or "").strip())
        if cert is None:
            raise CertificateNotFound(number)

        user = self.store.get_user(cert.user_id)
        course = self.store.get_course(cert.course_id)
        return {
            "certificate_number": cert.certificate_number,
            "user_name": user.full_name if user is not None else None,
            "course_title": course.title if course is not None else None,
            "course_level": course.level if course is not None else None,
            "issued_at": cert.issued_at,
            "verification_url": cert.verification_url,
        }

    def for_user(self, user_id: uuid.UUID) -> List[Certificate]:
        return list(self.store.user_certificates(user_id))
