from rich.console import Console
from functools import lru_cache


@lru_cache(maxsize=1)
def get_console() -> Console:
    """Get or create the shared Console instance"""
    return Console(highlight=False)


@lru_cache(maxsize=1)
def get_error_console() -> Console:
    """Console bound to stderr for fatal error lines"""
    return Console(stderr=True, highlight=False)
