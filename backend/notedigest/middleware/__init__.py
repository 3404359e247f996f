# Middleware package init
"""
NoteDigest Backend — Middleware Package
========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Request ID] → [Logging] → [Rate Limit] → [CORS] → Route Handler

    1. Request ID first: every later log line and error body can carry it
    2. Logging: records method, path, status and duration, including 429s
    3. Rate Limit: rejects excess ingestion requests before any work is done
    4. CORS: Applied by FastAPI's CORSMiddleware (handles preflight)
"""
