"""
API Module - REST API for the File Service

Provides HTTP endpoints over FileService.
"""

from .rest import create_app, run_api_server

__all__ = ['create_app', 'run_api_server']
