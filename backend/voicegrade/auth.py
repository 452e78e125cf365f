"""
VoiceGrade Backend - Caller Identity
======================================

What:  FastAPI dependency resolving the caller's identity, if any.
How:   Authentication happens upstream (auth gateway / reverse proxy), which
       forwards the authenticated user id in IDENTITY_HEADER. This service
       only tags and filters records with it; there are no roles.

An absent or blank header means the caller is anonymous. Anonymous callers
may still run the pipeline; their records are not listed anywhere.
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import APIKeyHeader

from voicegrade.config import settings

identity_header = APIKeyHeader(
    name=settings.identity_header,
    scheme_name="Identity",
    description="Authenticated user id forwarded by the auth gateway",
    auto_error=False,
)


async def get_current_user_id(
    raw_identity: Optional[str] = Depends(identity_header),
) -> Optional[str]:
    """Return the caller's user id, or None when unauthenticated."""
    if raw_identity is None:
        return None
    user_id = raw_identity.strip()
    return user_id or None
