"""Request-scoped context for agent runs.

Correlation and run identifiers live in ``ContextVar`` instances so that
concurrent runs on the same event loop never see each other's values.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from ulid import ULID

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")
_build_uuid: ContextVar[str] = ContextVar("build_uuid", default="")


def generate_run_id() -> str:
    """Generate a sortable run identifier."""
    return f"run_{ULID()}"


def get_correlation_id() -> str:
    """Return the correlation id of the current run, or an empty string."""
    return _correlation_id.get()


def get_build_uuid() -> str:
    """Return the build uuid bound to the current run, or an empty string."""
    return _build_uuid.get()


@contextmanager
def run_context(
    correlation_id: Optional[str] = None,
    build_uuid: Optional[str] = None,
) -> Iterator[str]:
    """Bind a correlation id (and optionally a build uuid) for the enclosed block.

    Yields:
        The correlation id in effect inside the block.
    """
    cid = correlation_id or generate_run_id()
    cid_token = _correlation_id.set(cid)
    build_token = _build_uuid.set(build_uuid) if build_uuid is not None else None
    try:
        yield cid
    finally:
        _correlation_id.reset(cid_token)
        if build_token is not None:
            _build_uuid.reset(build_token)
