"""Merch Studio - FastAPI REST API layer.

Modules
-------
main
    FastAPI application with all route handlers and the ``main()`` CLI
    entry point.
models
    Pydantic response models.
pagination
    Newest-first listing and pagination helpers for design stores.
"""
