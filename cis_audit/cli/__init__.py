"""Command-line interface for CIS Audit."""
