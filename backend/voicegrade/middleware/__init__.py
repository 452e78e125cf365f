"""
VoiceGrade Backend - Middleware Package
=========================================

Middleware Chain (order matters!):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    1. Rate Limit first: over-limit pipeline submissions are rejected before
       any work happens
    2. Request ID: correlation id for logs and error bodies
    3. Logging: one access line per request with status and duration
"""
