# Middleware package init
"""
StudySnap Backend - Middleware Package
========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (outermost first, as registered in main.create_app):
    Request → [Request ID] → [Logging] → [Rate Limit] → [GZip] → [CORS] → Route Handler

    - Request ID first, so every later log line carries the correlation id
    - Logging measures the full duration, including rejected requests
    - Rate Limit only inspects POST /api/ingest (each call may spend model quota)
    - CORS innermost, so preflight answers still get a request id
"""
