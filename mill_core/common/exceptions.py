# mill_core/common/exceptions.py
"""
Domain error taxonomy.

Every class is a DRF APIException so it flows through
mill_core.common.api.exceptions.api_exception_handler and is rendered with the
standard error envelope. Services raise these directly.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.exceptions import APIException, PermissionDenied, ValidationError
from rest_framework.exceptions import NotFound as DRFNotFound

DENIED_MSG = "You do not have permission to perform this action."


class Unauthorized(PermissionDenied):
    """
    Actor lacks the capability. Never says whether the resource exists.
    """
    default_detail = DENIED_MSG
    default_code = "permission_denied"


class TenantMismatch(Unauthorized):
    """
    Operation aimed at a tenant the actor does not belong to.
    Rendered exactly like Unauthorized; the type only matters to logs/tests.
    """


class TenantRequired(ValidationError):
    default_detail = "tenant_id is required for this operation."
    default_code = "invalid"


class InvalidPeriod(ValidationError):
    default_detail = "Invalid period."
    default_code = "invalid"


class NotFound(DRFNotFound):
    default_detail = "Not found."
    default_code = "not_found"


class ComputationError(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Metric computation failed."
    default_code = "computation_error"


class DegradedData(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Data is temporarily unavailable. Try again shortly."
    default_code = "degraded_data"


class AggregationCancelled(APIException):
    status_code = 499
    default_detail = "Request cancelled."
    default_code = "request_cancelled"
