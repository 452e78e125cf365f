"""
VoiceGrade Backend - API Routes Package
=========================================

Route Inventory:
    - uploads.py:         POST /api/uploads                 (issue upload URL)
                          POST /api/uploads/{token}         (single audio write)
    - transcriptions.py:  POST /api/transcriptions          (run the pipeline)
                          GET  /api/transcriptions          (recent history)
                          GET  /api/transcriptions/{id}     (one record)
                          GET  /api/files/{storage_id}      (stored audio)
    - health.py:          GET  /health                      (service health)

Routes stay thin: read the request, call a service, shape the response.
"""
