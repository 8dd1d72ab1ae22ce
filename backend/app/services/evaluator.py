from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from app.services.judge0 import ExecutionError, Judge0Client, language_id_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaseInput:
    input: str
    expected_output: str
    is_hidden: bool = False


@dataclass
class CaseResult:
    input: str
    expected_output: str
    actual_output: str
    passed: bool
    status: str
    is_hidden: bool = False
    time: str | None = None
    memory: int | None = None
    token: str | None = None


@dataclass
class EvaluationReport:
    results: list[CaseResult] = field(default_factory=list)
    total_passed: int = 0
    total_cases: int = 0

    @property
    def all_passed(self) -> bool:
        return self.total_cases > 0 and self.total_passed == self.total_cases

    @property
    def slowest_time(self) -> float | None:
        times: list[float] = []
        for r in self.results:
            try:
                if r.time is not None:
                    times.append(float(r.time))
            except ValueError:
                continue
        return max(times) if times else None

    @property
    def peak_memory(self) -> int | None:
        mem = [int(r.memory) for r in self.results if r.memory is not None]
        return max(mem) if mem else None

    @property
    def last_token(self) -> str | None:
        tokens = [r.token for r in self.results if r.token]
        return tokens[-1] if tokens else None


def outputs_match(actual: str | None, expected: str | None) -> bool:
    return (actual or "").strip() == (expected or "").strip()


def evaluate(
    client: Judge0Client,
    *,
    code: str,
    language: str,
    test_cases: Sequence[CaseInput],
    time_limit: float | None,
    memory_limit_kb: int | None,
) -> EvaluationReport:
    """Run ``code`` once per test case, in order, and score the batch.

    A case passes only when Judge0 reports Accepted and the trimmed stdout equals
    the trimmed expected output. Execution errors fail the affected case and the
    batch carries on; an unsupported language fails the whole evaluation.
    """
    language_id_for(language)

    report = EvaluationReport(total_cases=len(test_cases))
    for idx, case in enumerate(test_cases):
        try:
            result = client.run(
                code,
                language,
                stdin=case.input,
                cpu_time_limit_seconds=time_limit,
                memory_limit_kb=memory_limit_kb,
            )
        except ExecutionError as e:
            logger.warning("test case %s failed to execute: %s", idx, e)
            report.results.append(
                CaseResult(
                    input=case.input,
                    expected_output=case.expected_output,
                    actual_output="",
                    passed=False,
                    status=f"Error: {e}",
                    is_hidden=case.is_hidden,
                )
            )
            continue

        actual = (result.stdout or "").strip()
        passed = result.is_accepted and outputs_match(actual, case.expected_output)
        if passed:
            report.total_passed += 1

        report.results.append(
            CaseResult(
                input=case.input,
                expected_output=case.expected_output.strip(),
                actual_output=actual,
                passed=passed,
                status=result.status_description,
                is_hidden=case.is_hidden,
                time=result.time,
                memory=result.memory,
                token=result.token,
            )
        )

    return report
