"""Plain-text export of a job's process log and findings."""

from typing import List

from .schemas import Job, JobKind

REPORT_TITLES = {
    JobKind.MANUSCRIPT_ANALYSIS: "MANUSCRIPT ANALYSIS LOG",
    JobKind.COMPLIANCE_CHECK: "COMPLIANCE CHECK LOG",
    JobKind.METADATA_EXTRACTION: "METADATA EXTRACTION LOG",
}


def render_job_report(job: Job) -> str:
    """
    Render the downloadable log for a job.

    The header names the file and status, followed by the process log and,
    once the job has a result, one block per finding.
    """
    lines: List[str] = [
        REPORT_TITLES[job.kind],
        f"File: {job.source_name}",
        f"Status: {job.status.value}",
        "",
        "PROCESS LOG:",
        *job.logs,
        "",
        "---",
        "",
        "ANALYSIS REPORT:",
        "",
    ]

    if not job.result:
        lines.append("No findings.")
        return "\n".join(lines) + "\n"

    for finding in job.result:
        lines.extend(finding.report_lines())
        lines.append("")

    return "\n".join(lines)


__all__ = ["render_job_report", "REPORT_TITLES"]
