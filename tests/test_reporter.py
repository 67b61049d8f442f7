import json

from rich.console import Console

from categorizer.models import AnalysisRecord, AnalyzerStats, Categorization, Repository
from categorizer.pipeline import failed_record
from categorizer.reporter import generate_report, print_report, save_details, save_summary


def record(full_name, category):
    return AnalysisRecord(
        repo=Repository(full_name=full_name),
        categorization=Categorization(category, 90, "r"),
        web_search_calls=0,
        cached=False,
        timestamp="2025-01-01T00:00:00.000Z",
    )


RECORDS = [
    record("z/cli", "CLI & Terminal"),
    record("a/cli", "CLI & Terminal"),
    record("m/test", "Testing & QA"),
    failed_record(Repository(full_name="x/broken"), "503 [overloaded]"),
]
STATS = AnalyzerStats(total=4, analyzed=3, cached=0, failed=1, total_tokens=1234)


def test_generate_report_groups_by_category():
    report = generate_report(RECORDS, STATS)

    assert report.total_repos == 4
    assert report.categories == {
        "CLI & Terminal": {"count": 2, "repos": ["a/cli", "z/cli"]},
        "Testing & QA": {"count": 1, "repos": ["m/test"]},
    }
    assert report.failed_repos == [{"name": "x/broken", "error": "503 [overloaded]"}]
    assert report.stats == STATS
    assert report.stats is not STATS


def test_save_summary_and_details(tmp_path):
    report = generate_report(RECORDS, STATS)

    summary_path = save_summary(report, tmp_path)
    details_path = save_details(RECORDS, tmp_path)

    assert summary_path.name.startswith("report-")
    assert details_path.name.startswith("detailed-")
    summary = json.loads(summary_path.read_text(encoding="utf-8"))
    assert summary["totalRepos"] == 4
    assert summary["stats"]["totalTokens"] == 1234
    assert summary["failedRepos"][0]["name"] == "x/broken"
    details = json.loads(details_path.read_text(encoding="utf-8"))
    assert [d["repo"]["full_name"] for d in details] == ["a/cli", "m/test", "x/broken", "z/cli"]
    assert details[2]["failed"] is True


def test_print_report_renders_summary():
    console = Console(record=True, width=120)

    print_report(generate_report(RECORDS, STATS), console)

    output = console.export_text()
    assert "Analysis Summary" in output
    assert "CLI & Terminal" in output
    assert "1,234" in output
    assert "x/broken" in output
    assert "503 [overloaded]" in output
