"""
qurl HTTP module.

Resolves targets, builds and authenticates requests, sends them through
httpx (or the Lambda transport) and handles the responses.
"""


def __getattr__(name):
    """Lazy imports; the executor depends on the OpenAPI package, which depends on this one."""
    if name in ("Executor", "ExecutorFactory"):
        from qurl.http.executor import Executor, ExecutorFactory

        return Executor if name == "Executor" else ExecutorFactory
    elif name == "ResponseData":
        from qurl.http.response import ResponseData

        return ResponseData
    raise AttributeError(f"module 'qurl.http' has no attribute {name}")


__all__ = ["Executor", "ExecutorFactory", "ResponseData"]
