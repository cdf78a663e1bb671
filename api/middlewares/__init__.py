"""
HTTP middlewares de l'application.
"""

from .timing import request_timing_middleware, request_id_var

__all__ = [
    "request_timing_middleware",
    "request_id_var",
]
