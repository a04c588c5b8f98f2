"""Numeric process exit codes for the ``wechatapi`` command line.

Each constant maps to one error category and is referenced by the
corresponding :class:`~wechatapi.exceptions.WeChatAPIError` subclass.
Shell wrappers can inspect the exit code to tell a rejected credential
from an unreachable server without parsing stderr.

Example::

    $ wechatapi call menu/get
    $ echo $?
    7   # EXIT_API_ERROR -- the platform answered with a nonzero errcode
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""The platform kept rejecting the access token after every refresh."""

EXIT_TRANSPORT_ERROR = 5
"""The HTTP exchange failed (unexpected status, timeout, connection refused)."""

EXIT_DECODE_ERROR = 6
"""The response declared JSON content that could not be parsed."""

EXIT_API_ERROR = 7
"""The platform returned a nonzero ``errcode``."""

EXIT_CAPABILITY_ERROR = 10
"""An extension module failed to register its operations."""
