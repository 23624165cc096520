import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


async def run_side_effect(label: str, effect: Callable[[], Awaitable[Any]]) -> Optional[Any]:
    """
    Run a follow-up action after a primary write has been committed.

    Failures are logged and swallowed. Effects that write to the database open
    their own session, so the caller's committed state is never touched.
    """
    try:
        return await effect()
    except Exception:
        logger.exception(f"Side effect '{label}' failed")
        return None
