"""Rollcall HTTP API layer.

This package provides the Falcon Asynchronous Server Gateway Interface
(ASGI) application for reading attendance facts, applying manual edits and
triggering imports.

Usage
-----
Create and run the application::

    from rollcall.api import create_app

    app = create_app()              # health-only mode
    app = create_app(dependencies)  # full mode with attendance endpoints

"""

from rollcall.api.app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
