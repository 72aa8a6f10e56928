"""Operational scripts; ``vector_cli`` is installed as the ``simstore`` command."""
