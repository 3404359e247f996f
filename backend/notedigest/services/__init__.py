# Services package init
"""
NoteDigest Backend — Services Layer
====================================

Service Inventory:
    - extraction / web_extractor / youtube_extractor / pdf_extractor:
      turn each input kind into normalized text and segments
    - hashing, titles, summarizer: pure helpers around the generation call
    - LLMService (abstract) / GeminiService: text generation with retry and
      a circuit breaker
    - FileService: upload validation and transient file storage
    - NoteStore (abstract) / SqlAlchemyNoteStore: persistence adapter
    - IngestionService: the ingestion pipeline, create-or-update decisions
    - NoteService: listing and ownership-checked retrieval
    - QuizService: PDF quiz chat turns (nothing persisted)
"""
