"""
Pydantic Schemas
"""

from .auth_provider import AuthProviderSummary

__all__ = ["AuthProviderSummary"]
