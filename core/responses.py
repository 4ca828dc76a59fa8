"""
Shared API response helpers.
"""

from rest_framework import status
from rest_framework.response import Response


def error_response(exc, status_code=None):
    """
    Translate a domain exception into the standard error body:
    {'success': False, 'message': ..., 'code': ...}

    Exceptions without a status_code (gateway errors) map to 502.
    """
    if status_code is None:
        status_code = getattr(exc, 'status_code', status.HTTP_502_BAD_GATEWAY)
    return Response(
        {'success': False, 'message': exc.message, 'code': exc.code},
        status=status_code
    )


def failure(message, code, status_code=status.HTTP_400_BAD_REQUEST):
    return Response({'success': False, 'message': message, 'code': code}, status=status_code)
