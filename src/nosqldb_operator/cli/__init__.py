"""
CLI layer for nosqldb-operator.

Entry point::

    nosqldb-operator --help
"""

from nosqldb_operator.cli.app import app

__all__ = ["app"]
