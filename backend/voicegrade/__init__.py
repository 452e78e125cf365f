"""
VoiceGrade Backend - Application Package
=========================================

What:  Voice-note grammar assessment service.
How:   A recorded clip is uploaded through a single-use URL, transcribed by an
       external speech-to-text endpoint, graded by an external chat model, and
       stored as an immutable record in the caller's history.

Architecture Note:
    ┌─────────────────────────────────────┐
    │      Client (Recorder, Uploader)    │  ← voicegrade.client
    ├─────────────────────────────────────┤
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (Pipeline, Storage, ...) │  ← Orchestration, upstream calls
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
