"""
API module for the SodaLab Discovery Service.

This module contains the Flask application factory and API endpoints.
"""

from .app import create_app, main

__all__ = ["create_app", "main"]
