# Middleware package init
"""
Stagehand - Middleware Package
==============================

Middleware Chain (outermost first):
    Request → [Request ID] → [Acting User] → [Logging] → Route Handler

    - Request ID: correlation id stored in a ContextVar and echoed in a header
    - Acting User: caller id for audit stamping and request logging
    - Logging: method, path, status and duration of every request
"""
