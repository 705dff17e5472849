"""
Business codes carried in the ``code`` field of every JSON error body.

Generic codes live here; webhook and provider codes live in
``shared.codes.payment_codes`` (6xxxx). Both are mapped to HTTP status
in ``core.exceptions``.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    SUCCESS = 0

    # Request shape (1xxxx)
    PARAM_ERROR = 10000
    PARAM_VALIDATION_ERROR = 10003
    METHOD_NOT_ALLOWED = 10005

    # Lookup (2xxxx)
    NOT_FOUND = 20006

    # Access (3xxxx)
    UNAUTHORIZED = 30001
    FORBIDDEN = 30002

    # Server side (4xxxx)
    SYSTEM_ERROR = 40000
    SERVICE_UNAVAILABLE = 40003


__all__ = ["BusinessCode"]
