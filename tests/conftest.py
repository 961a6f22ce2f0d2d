from decimal import Decimal
from pathlib import Path

import pytest

from donation_leaderboard.schemas import LeaderboardSettings, OrderRecord

NOW = 1_767_225_600  # 2026-01-01T00:00:00Z

_CASE_RESULTS: list[dict[str, str]] = []


class FakeClock:
    def __init__(self, now: float = NOW) -> None:
        self.now = float(now)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_order(**overrides) -> OrderRecord:
    values = {
        "completed_at": NOW - 3600,
        "billing_first_name": "Jane",
        "billing_last_name": "Doe Smith",
        "company": "",
        "city": "Berlin",
        "country": "DE",
        "postcode": "10115",
        "total": Decimal("12.50"),
        "currency": "USD",
        "product_ids": frozenset({42}),
        "customer_note": "",
    }
    values.update(overrides)
    return OrderRecord(**values)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> LeaderboardSettings:
    return LeaderboardSettings()


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "case(point, keyword='N/A'): annotate testcase with test point and keyword",
    )


@pytest.fixture
def record_keyword(request: pytest.FixtureRequest):
    def _record(keyword: str) -> None:
        request.node.user_properties.append(("keyword", str(keyword)))

    return _record


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo):
    outcome = yield
    report = outcome.get_result()

    if report.when != "call":
        return

    marker = item.get_closest_marker("case")
    if marker is None:
        return

    point = str(marker.kwargs.get("point", "Unlabeled test point"))
    keyword = str(marker.kwargs.get("keyword", "N/A"))
    for key, value in item.user_properties:
        if key == "keyword":
            keyword = str(value)

    _CASE_RESULTS.append(
        {
            "case": item.name,
            "status": report.outcome,
            "point": point,
            "keyword": keyword,
        }
    )


def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:
    if not _CASE_RESULTS:
        return

    report_dir = Path("tests/reports")
    report_dir.mkdir(parents=True, exist_ok=True)
    report_file = report_dir / "leaderboard-test-execution-report.md"

    passed = sum(1 for row in _CASE_RESULTS if row["status"] == "passed")
    failed = sum(1 for row in _CASE_RESULTS if row["status"] == "failed")
    skipped = sum(1 for row in _CASE_RESULTS if row["status"] == "skipped")

    lines = [
        "# Leaderboard Test Execution Report",
        "",
        f"- Total test cases: {len(_CASE_RESULTS)}",
        f"- Passed: {passed}",
        f"- Failed: {failed}",
        f"- Skipped: {skipped}",
        "",
        "## Case Details",
        "| No. | Test Case | Result | Test Point | Keyword |",
        "|---:|---|---|---|---|",
    ]

    for index, row in enumerate(_CASE_RESULTS, start=1):
        lines.append(f"| {index} | {row['case']} | {row['status']} | {row['point']} | {row['keyword']} |")

    report_file.write_text("\n".join(lines), encoding="utf-8")
