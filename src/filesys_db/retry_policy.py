from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from filesys_db.errors import DatabaseBusyError


def with_retry(max_attempts: int = 3):
    return retry(
        reraise=True,
        retry=retry_if_exception_type(DatabaseBusyError),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential_jitter(initial=0.05, max=1, jitter=0.05),
    )
