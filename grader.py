"""
Code challenge grading.

There is no execution sandbox behind this module. Results are simulated:
test case ``i`` passes when ``i`` is even, whatever code was submitted.
Callers rely only on ``run_test_cases`` and ``grade`` so a real execution
service can replace the simulation without touching them.
"""
import logging
import random
from typing import Iterable, List, Tuple

logger = logging.getLogger(__name__)

MAX_EXECUTION_MS = 500


def run_test_cases(code: str, test_cases: Iterable[dict]) -> List[dict]:
    results = []
    for index, case in enumerate(test_cases):
        passed = index % 2 == 0
        expected = case.get("expected_output", "")
        results.append({
            "input": case.get("input", ""),
            "expected": expected,
            "actual": expected if passed else "Different result",
            "passed": passed,
        })
    return results


def grade(code: str, test_cases: Iterable[dict]) -> Tuple[bool, int, List[dict]]:
    """Return (passed, execution_time_ms, results) for a submission."""
    results = run_test_cases(code, test_cases)
    passed = bool(results) and all(r["passed"] for r in results)
    execution_time = random.randint(0, MAX_EXECUTION_MS)
    logger.debug("Simulated grading: %d/%d passed", sum(r["passed"] for r in results), len(results))
    return passed, execution_time, results
