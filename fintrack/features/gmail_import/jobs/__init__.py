from .gmail_fetch_job import (
    GmailFetchJob,
    GmailFetchJobError,
    get_gmail_fetch_job_status,
    run_gmail_fetch_job,
    start_gmail_fetch_scheduler,
)

__all__ = [
    "GmailFetchJob",
    "GmailFetchJobError",
    "get_gmail_fetch_job_status",
    "run_gmail_fetch_job",
    "start_gmail_fetch_scheduler",
]
