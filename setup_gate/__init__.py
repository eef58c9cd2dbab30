"""
setup-gate: hold a FastAPI application behind a password-protected setup
wizard until first-run configuration is complete.
"""

__version__ = "0.1.0"
