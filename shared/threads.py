import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


def spawn_background(target: Callable, *args, name: str = None) -> threading.Thread:
    """Run target on a daemon thread. Exceptions are logged, never raised."""
    def runner():
        try:
            target(*args)
        except Exception:
            logger.exception(f"Background task {name or getattr(target, '__name__', target)} crashed")

    thread = threading.Thread(target=runner, name=name, daemon=True)
    thread.start()
    return thread


def run_inline(target: Callable, *args, name: str = None) -> None:
    """Synchronous stand-in for spawn_background (CLI runs, tests)."""
    target(*args)
