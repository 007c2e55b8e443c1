# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Exception types raised by Dataverse.

The parser and compiler never raise: they report problems through
``QueryIntent.confidence`` and ``CompiledQuery.validation_errors``. The
exceptions below are for the I/O-facing layers (connection pool, schema
extraction, query execution).
"""


class DataverseError(Exception):
    """Base class for all Dataverse errors."""


class DatabaseConnectionError(DataverseError, ConnectionError):
    """The source database could not be reached or authenticated against.

    Never retried internally; the caller decides whether to try again.
    """


class ValidationError(DataverseError, ValueError):
    """Input or a compiled query is structurally invalid."""


class NotFoundError(DataverseError, LookupError):
    """A referenced collection or project does not exist."""
