from .findings import (
    AssetType,
    BoundingBox,
    ComplianceFinding,
    ComplianceStatus,
    ExtractedAsset,
    Finding,
    IssueCategory,
    IssuePriority,
    JournalRecommendation,
    ManuscriptIssue,
)
from .jobs import Job, JobKind, JobStatus, JobSubmission

__all__ = [
    "AssetType",
    "BoundingBox",
    "ComplianceFinding",
    "ComplianceStatus",
    "ExtractedAsset",
    "Finding",
    "IssueCategory",
    "IssuePriority",
    "JournalRecommendation",
    "ManuscriptIssue",
    "Job",
    "JobKind",
    "JobStatus",
    "JobSubmission",
]
