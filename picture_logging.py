"""
Picture Processor - Logging helpers

Copyright (C) 2025 Adnan Valdes

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program. If not, see <https://www.gnu.org/licenses/>.
"""
import functools
import logging
import time


logger = logging.getLogger(__name__)


def log_method(log_time: bool = False):
    """
    Decorator to log start and end of a method or filter call.
    If log_time=True, it also logs duration.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger.info(f"Starting '{func.__name__}'...")
            start = time.time() if log_time else None
            result = func(*args, **kwargs)
            if log_time:
                duration = time.time() - start
                logger.info(f"Finished '{func.__name__}' in {duration:.2f} seconds.")
            else:
                logger.info(f"Finished '{func.__name__}'.")
            return result

        return wrapper

    return decorator


def log_step(msg_or_func):
    """
    Decorator factory to log a custom message before a method call.
    Used to mark the seeding, convergence and rendering stages of a quantization run.
    A callable message receives the bound instance.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            msg = msg_or_func(self) if callable(msg_or_func) else msg_or_func
            logger.info(f"Starting: {msg}")
            result = func(self, *args, **kwargs)
            logger.info(f"Finished: {msg}")
            return result

        return wrapper

    return decorator
