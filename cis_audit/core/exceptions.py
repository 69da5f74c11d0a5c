"""CIS Audit exceptions.

Per-check problems never escape a check: they end up as a Skipped or Error
row in the report. Everything deriving from InfrastructureError is fatal to
the run, and the CLI exits without producing a report.

Example:
    >>> from cis_audit.core.auditor import Auditor
    >>> from cis_audit.core.exceptions import InfrastructureError
    >>>
    >>> try:
    ...     report = Auditor(catalog).run_sync(request)
    ... except InfrastructureError as e:
    ...     print(f"Audit aborted: {e}")
"""


class AuditError(Exception):
    """Base exception for all CIS Audit errors."""

    pass


class ConfigError(AuditError, ValueError):
    """Raised when run options, environment values or a config file are invalid."""

    pass


class InvalidIdentifierError(AuditError, ValueError):
    """Raised when a check identifier is not a dotted list of components."""

    pass


class CatalogError(AuditError):
    """Raised when the check catalog is inconsistent (e.g. duplicate ids)."""

    pass


class InfrastructureError(AuditError):
    """Raised when the orchestration machinery itself fails.

    This typically indicates:
    - Progress counters that no longer balance
    - Results appended after the run was sealed
    - A result read before every check was joined
    """

    pass


class ProgressError(InfrastructureError):
    """Raised when a check finishes without having been started."""

    pass


class AggregatorSealedError(InfrastructureError):
    """Raised when a result is appended after the aggregator was sealed."""

    pass


class AggregatorNotSealedError(InfrastructureError):
    """Raised when results are read before every check has been joined."""

    pass


class DuplicateResultError(InfrastructureError):
    """Raised when a second result is recorded for the same check id."""

    pass


class CheckSkipped(Exception):
    """Raised by a check when its precondition does not hold on this host."""

    pass


class CheckDataError(Exception):
    """Raised by a check when host data cannot be interpreted safely."""

    pass
