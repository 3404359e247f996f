# Routes package init
"""
NoteDigest Backend — API Routes Package
========================================

Route Inventory:
    - notes.py:      POST /api/notes/text, /api/notes/web, /api/notes/transcripts
                     GET  /api/notes/{source_id}
    - summaries.py:  POST /api/summaries (PDF upload), GET /api/summaries (listing)
    - chat.py:       POST /api/chat/quiz (PDF quiz chat)
    - health.py:     GET  /health

Design Principle:
    Routes are THIN: authenticate, read the request, call a service, shape
    the response. Business rules live in services; error mapping lives in
    the global exception handlers.
"""
