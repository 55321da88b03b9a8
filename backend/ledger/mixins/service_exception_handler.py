"""
Service exception handler mixin.
Translates ledger service errors into DRF exceptions with structured logging,
so every view surfaces 400/403/404/409 consistently.
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework.exceptions import APIException
from rest_framework.exceptions import PermissionDenied as DRFPermissionDenied
from rest_framework.exceptions import ValidationError as DRFValidationError

from ..exceptions import Conflict

logger = logging.getLogger(__name__)


class ServiceExceptionHandlerMixin:
    """
    Mixin for running service calls from views.

    - Django ``ValidationError`` (including ``InvalidRole``) becomes a DRF 400
    - Python ``PermissionError`` becomes a DRF 403
    - DRF ``APIException`` subclasses (403, 404, 409) propagate unchanged
    - anything else is logged with its stack trace and surfaced as a generic 500

    Usage:
        change_request = self.handle_service_call(
            TransactionService.request_edit_others,
            identity, transaction_id, changes, reason
        )
    """

    def handle_service_call(self, service_call, *args, **kwargs):
        """
        Execute a service call and translate its exceptions.

        Returns:
            Any: Result from the service call

        Raises:
            DRFValidationError: For business rule violations
            DRFPermissionDenied: For authorization failures
            APIException: For conflicts, missing objects and unexpected errors
        """
        service_name = getattr(service_call, "__qualname__", str(service_call))
        log_context = self._service_log_context(service_name)

        logger.debug(
            "Service call execution initiated",
            extra={
                **log_context,
                "args_count": len(args),
                "kwargs_keys": list(kwargs.keys()),
                "action": "service_call_start",
                "component": "ServiceExceptionHandlerMixin",
            },
        )

        try:
            result = service_call(*args, **kwargs)

        except DRFValidationError as e:
            logger.warning(
                "Service validation error (DRF)",
                extra={
                    **log_context,
                    "error_detail": e.detail,
                    "action": "service_validation_error_drf",
                    "component": "ServiceExceptionHandlerMixin",
                    "severity": "medium",
                },
            )
            raise

        except DjangoValidationError as e:
            if hasattr(e, "error_dict"):
                detail = e.message_dict
            else:
                detail = e.messages

            logger.warning(
                "Service validation error (Django)",
                extra={
                    **log_context,
                    "error_type": type(e).__name__,
                    "error_messages": e.messages,
                    "action": "service_validation_error_django",
                    "component": "ServiceExceptionHandlerMixin",
                    "severity": "medium",
                },
            )
            raise DRFValidationError(detail, code=getattr(e, "code", None) or "invalid")

        except PermissionError as e:
            logger.warning(
                "Service permission denied (Python)",
                extra={
                    **log_context,
                    "error_message": str(e),
                    "action": "service_permission_denied_python",
                    "component": "ServiceExceptionHandlerMixin",
                    "severity": "high",
                },
            )
            raise DRFPermissionDenied(str(e))

        except Conflict as e:
            logger.warning(
                "Service state conflict",
                extra={
                    **log_context,
                    "error_detail": str(e.detail),
                    "action": "service_conflict",
                    "component": "ServiceExceptionHandlerMixin",
                    "severity": "medium",
                },
            )
            raise

        except APIException as e:
            logger.warning(
                "Service API exception",
                extra={
                    **log_context,
                    "error_type": type(e).__name__,
                    "error_detail": str(e.detail),
                    "status_code": e.status_code,
                    "action": "service_api_exception",
                    "component": "ServiceExceptionHandlerMixin",
                    "severity": "high" if isinstance(e, DRFPermissionDenied) else "medium",
                },
            )
            raise

        except Exception as e:
            logger.error(
                "Service operation failed unexpectedly",
                extra={
                    **log_context,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                    "action": "service_unexpected_error",
                    "component": "ServiceExceptionHandlerMixin",
                    "severity": "critical",
                },
                exc_info=True,
            )
            # Generic error to prevent information leakage
            raise APIException(detail="Service operation failed", code="service_error")

        logger.debug(
            "Service call completed successfully",
            extra={
                **log_context,
                "result_type": type(result).__name__,
                "action": "service_call_success",
                "component": "ServiceExceptionHandlerMixin",
            },
        )
        return result

    def _service_log_context(self, service_name):
        request = getattr(self, "request", None)
        identity = getattr(request, "identity", None) if request else None
        return {
            "service_name": service_name,
            "user_id": getattr(getattr(request, "user", None), "id", None),
            "team_id": getattr(identity, "team_id", None),
            "actual_role": identity.actual_role.value if identity else None,
        }
