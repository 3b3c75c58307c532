from __future__ import annotations

from typing import Any, Callable, TypeVar

from anyio import to_thread
from postgrest.exceptions import APIError as PostgrestAPIError

from .errors import Conflict, DomainError, Forbidden, UpstreamPersistenceFailure

R = TypeVar("R")


def map_pgrest(e: PostgrestAPIError) -> DomainError:
    code = getattr(e, "code", None) or ""
    # Postgres / PostgREST error codes:
    # 23505 unique_violation, 42501 insufficient_privilege (RLS), 23503 foreign_key_violation
    if code == "23505":
        return Conflict("duplicate")
    if code == "42501":
        return Forbidden("permission denied")
    if code == "23503":
        return Conflict("foreign key violation")
    return UpstreamPersistenceFailure(f"store error {code or '?'}: {getattr(e, 'message', e)}")


async def run_store_call(fn: Callable[..., R], *args: Any) -> R:
    """Run a sync supabase-py call in the threadpool and translate its failures."""
    try:
        return await to_thread.run_sync(fn, *args)
    except DomainError:
        raise
    except PostgrestAPIError as e:
        raise map_pgrest(e) from e
    except Exception as e:
        raise UpstreamPersistenceFailure(f"store call failed: {e!r}") from e
