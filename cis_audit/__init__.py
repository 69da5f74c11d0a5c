"""CIS Audit - read-only compliance auditing against CIS benchmarks."""

__version__ = "1.0.0"
