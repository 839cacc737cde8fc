"""
authgate: third-party identity provider routing for FastAPI apps.
"""

__version__ = "0.1.0"
