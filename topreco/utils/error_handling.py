import time
import functools
import logging
from topreco.utils.exceptions import TopRecoException

def handle_engine_errors(operation_name: str):
    """
    Decorator for engine entry points.

    Project exceptions propagate unchanged; anything else is logged with its
    traceback and re-raised as TopRecoException. The wall time of successful
    calls is logged at DEBUG.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = getattr(args[0], 'logger', None) if args else None
            logger = logger or logging.getLogger("topreco")
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except TopRecoException:
                raise
            except Exception as e:
                logger.error(f"{operation_name} failed: {e}", exc_info=True)
                raise TopRecoException(f"{operation_name} failed: {str(e)}") from e
            logger.debug(f"{operation_name} finished in {time.perf_counter() - start:.2f}s")
            return result
        return wrapper
    return decorator
