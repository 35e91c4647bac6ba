# Routes package init
"""
StudySnap Backend - API Routes Package
========================================

What:  HTTP route handlers that accept requests and return responses.
How:   Each route module handles a specific resource or action.

Route Inventory:
    - ingest.py:  POST /api/ingest                 (submit a photo)
                  GET  /api/ingest/status          (busy / state / banner)
                  POST /api/ingest/status/dismiss  (clear the banner)
                  POST /api/ingest/cancel          (cancel the running photo)
    - notes.py:   GET  /api/notes                  (list notes, newest date first)
                  GET  /api/notes/{id}             (single note)
    - health.py:  GET  /health                     (service health check)

Routes stay thin: they read the request, call a service and shape the
response. Errors are raised as StudySnapError subclasses and formatted by the
handlers in main.py.
"""
