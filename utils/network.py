import time
import functools
from utils.logger import log_warning

def _is_client_error(exc: Exception) -> bool:
    """4xx responses are logic errors (bad filter, RLS denial, missing row); retrying won't help."""
    code = getattr(exc, "code", None)
    if code is not None and str(code).startswith(("4", "PGRST")):
        return True
    status = getattr(getattr(exc, "response", None), "status_code", None)
    if status is not None and 400 <= int(status) < 500:
        return True
    return " 400" in str(exc) or str(exc).startswith("400")

def retry_operation(max_retries=3, delay=1.0, backoff=2.0, exceptions=(Exception,)):
    """
    Decorator to retry a function upon exception.

    :param max_retries: Number of attempts before giving up.
    :param delay: Initial delay in seconds.
    :param backoff: Multiplier for delay after each fail.
    :param exceptions: Tuple of exceptions to catch (default: Exception).
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            mtries, mdelay = max_retries, delay
            while mtries > 1:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if _is_client_error(e):
                        raise

                    log_warning(f"Retry ({max_retries - mtries + 1}/{max_retries}) for {func.__name__}: {e}")
                    time.sleep(mdelay)
                    mtries -= 1
                    mdelay *= backoff
            return func(*args, **kwargs)
        return wrapper
    return decorator
