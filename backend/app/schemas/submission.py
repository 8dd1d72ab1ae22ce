from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from app.services.judge0 import LANGUAGE_IDS


class SubmitRequest(BaseModel):
    code: str = Field(min_length=1)
    language: str

    @field_validator("language")
    @classmethod
    def _known_language(cls, v: str) -> str:
        lang = str(v or "").strip().lower()
        if lang not in LANGUAGE_IDS:
            raise ValueError(f"Unsupported language: {v}")
        return lang


class CaseResultOut(BaseModel):
    input: str | None
    expected_output: str | None
    actual_output: str | None
    passed: bool
    status: str
    is_hidden: bool = False
    time: str | None = None
    memory: int | None = None


class SubmissionOut(BaseModel):
    id: str
    task_id: str
    language: str
    status: str | None
    test_cases_passed: int
    total_test_cases: int
    execution_time: float | None = None
    memory_used: int | None = None
    error_message: str | None = None
    created_at: str
    finished_at: str | None = None


class SubmissionDetail(SubmissionOut):
    code: str


class SubmitResponse(BaseModel):
    submission: SubmissionOut
    results: list[CaseResultOut]
    total_passed: int
    total_tests: int
    xp_awarded: int = 0
    achievements: list[str] = []


class SubmissionListResponse(BaseModel):
    items: list[SubmissionOut]
