"""
Error taxonomy for the knowledge base pipeline.

Every error carries a ``kind`` (stable string used in outcomes and logs)
and the process ``exit_code`` the CLI reports for it.
"""


class NavigatorError(Exception):
    """Base class for pipeline errors."""
    kind = "error"
    exit_code = 1


class InvalidInput(NavigatorError):
    """Empty prompt text or missing tenant/user identifiers."""
    kind = "invalid_input"
    exit_code = 2


class ProviderError(NavigatorError):
    """Embedding or completion provider call failed."""
    kind = "provider_error"
    exit_code = 3


class StoreError(NavigatorError):
    """Vector store request failed."""
    kind = "store_error"
    exit_code = 4


class Cancelled(NavigatorError):
    """Pipeline was cancelled before producing an answer."""
    kind = "cancelled"
    exit_code = 130
