"""Exception hierarchy for rpclink.

Each module defines its own error type next to the code that raises it; all
of them derive from RpcLinkError so callers can catch one type.
"""


class RpcLinkError(Exception):
    """Base class for all rpclink errors."""

    pass
