# ledger/mixins/__init__.py
from .service_exception_handler import ServiceExceptionHandlerMixin
from .team_context import TeamContextMixin

__all__ = [
    "TeamContextMixin",
    "ServiceExceptionHandlerMixin",
]
