from pagewise.export import render_job_report
from pagewise.schemas import ComplianceFinding, JobKind, JobStatus, JournalRecommendation

from conftest import make_issue, make_job


def test_report_header_and_log():
    job = make_job(
        source_name="chapter.pdf",
        status=JobStatus.COMPLETED,
        logs=["[10:00:00] Processing started.", "[10:00:05] Split into 1 chunks."],
        result=[make_issue(page=3)],
    )

    report = render_job_report(job)

    assert report.startswith(
        "MANUSCRIPT ANALYSIS LOG\nFile: chapter.pdf\nStatus: completed\n\nPROCESS LOG:\n"
        "[10:00:00] Processing started.\n[10:00:05] Split into 1 chunks.\n\n---\n\nANALYSIS REPORT:\n\n"
    )
    assert "[HIGH] Structural Integrity" in report
    assert "- Manuscript (p. 3): \"Figure 2 shows\"" in report


def test_report_for_compliance_findings():
    job = make_job(
        kind=JobKind.COMPLIANCE_CHECK,
        status=JobStatus.COMPLETED,
        result=[
            ComplianceFinding(
                check_category="Word count",
                status="warn",
                summary="Close to the limit",
                recommendation="Trim the discussion.",
            ),
            JournalRecommendation(
                journal_name="Journal of Tests", publisher="Test Press", field="Testing", reasoning="Fits."
            ),
        ],
    )

    report = render_job_report(job)

    assert report.startswith("COMPLIANCE CHECK LOG")
    assert "[WARN] Word count" in report
    assert "[JOURNAL] Journal of Tests" in report


def test_report_without_result():
    job = make_job(status=JobStatus.ERROR, logs=["[10:00:00] FATAL ERROR: boom"])

    report = render_job_report(job)

    assert "Status: error" in report
    assert report.endswith("No findings.\n")
