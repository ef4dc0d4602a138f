import concurrent.futures
from typing import Any, Callable, TypeVar

T = TypeVar("T")

# Shared pool for blocking calls that need a hard deadline.
_executor = concurrent.futures.ThreadPoolExecutor(max_workers=8, thread_name_prefix="swiftclaim-call")


def run_with_timeout(fn: Callable[..., T], timeout: float, *args: Any, **kwargs: Any) -> T:
    """
    Run `fn` in the shared pool and wait at most `timeout` seconds.

    Raises TimeoutError when the deadline passes; the worker thread is abandoned,
    not interrupted. Exceptions raised by `fn` propagate unchanged.
    """
    future = _executor.submit(fn, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except concurrent.futures.TimeoutError as e:
        future.cancel()
        raise TimeoutError(f"call exceeded {timeout:.1f}s") from e
