"""Gemini Gateway — FastAPI HTTP layer.

This package contains the FastAPI application, the upload acceptor, the
per-request orchestrator and the Pydantic response models.

Modules
-------
main
    FastAPI application factory, route handlers, exception handlers and the
    ``main()`` CLI entry point.
models
    Pydantic models for API responses.
uploads
    Multipart upload validation and hand-off to temp storage.
orchestrator
    Upload-to-Gemini request lifecycle with guaranteed cleanup.
"""
