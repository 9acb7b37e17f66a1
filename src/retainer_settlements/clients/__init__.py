"""
Client wrappers for external services.
"""

from .postgres_client import PostgresClient

__all__ = ['PostgresClient']
