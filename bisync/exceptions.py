"""
Sync error types and classification.
"""

import socket
from typing import Optional

from sqlalchemy.exc import DBAPIError, DisconnectionError


class BiSyncError(Exception):
    """Base class for errors raised by the sync"""


class ConnectivityError(BiSyncError):
    """A store could not be reached. Fatal for the whole run."""

    def __init__(self, store: str, cause: Optional[BaseException] = None):
        self.store = store
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{store} database unreachable{detail}")


class UnsupportedDialectError(BiSyncError):
    """The BI store's backend has no conflict-clause upsert we can express"""

    def __init__(self, dialect: str):
        self.dialect = dialect
        super().__init__(
            f"Dialect '{dialect}' is not supported for upserts "
            "(expected mysql, postgresql or sqlite)"
        )


def is_connectivity_error(exc: BaseException) -> bool:
    """
    True when ``exc`` itself shows that a store went away.

    Only errors that say so unambiguously are recognised here. Drivers
    report a refused connection as a plain ``OperationalError``, so the
    sync re-checks the stores after any failed step as well.
    """
    if isinstance(exc, (ConnectivityError, DisconnectionError, ConnectionError)):
        return True
    if isinstance(exc, DBAPIError):
        return bool(exc.connection_invalidated)
    return isinstance(exc, (socket.timeout, socket.gaierror))
