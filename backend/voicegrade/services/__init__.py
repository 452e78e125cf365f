"""
VoiceGrade Backend - Services Layer
=====================================

What:  Business logic between routes (HTTP) and the database.

Service Inventory:
    - SpeechProvider (abstract): transcription + grading contract
    - OpenAIService: OpenAI-compatible HTTP implementation
    - StorageService: upload slots, audio writes and reads
    - RecordService: immutable record persistence and history reads
    - PipelineService: storage → transcribe → grade → record orchestration
"""
