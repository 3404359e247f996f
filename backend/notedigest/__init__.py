"""
NoteDigest Backend — Application Package Initializer
=====================================================

What: Marks the `notedigest` directory as a Python package.
Who:  Imported by uvicorn (`notedigest.main:app`), pytest, and every module.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Ingestion / Note / Quiz services  │  ← Orchestration, validation
    ├─────────────────────────────────────┤
    │   Extractors · Summarizer · Store   │  ← PDF/web/YouTube, Gemini, DB
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Routes translate HTTP into service calls; services raise typed errors
    from `notedigest.exceptions`; global handlers in `notedigest.main`
    turn those errors into status codes.
"""

__version__ = "1.0.0"
