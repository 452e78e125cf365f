"""Create upload, audio blob and transcription tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Initial schema.
         upload_targets  single-use upload slots
         audio_blobs     stored recordings (the storage references)
         transcriptions  immutable transcribe-and-grade results
How:   Portable column types (sa.Uuid, sa.JSON) so the same revision runs on
       PostgreSQL and SQLite. Ids are generated by the application.

Rollback: downgrade() drops all three tables (all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "upload_targets",
        sa.Column("token", sa.String(64), nullable=False,
                  comment="URL-safe random token embedded in the upload URL"),
        sa.Column("owner_id", sa.String(255), nullable=True,
                  comment="Identity that requested the upload URL"),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("consumed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("token"),
    )

    op.create_table(
        "audio_blobs",
        sa.Column("id", sa.Uuid(), nullable=False, comment="Opaque storage reference"),
        sa.Column("owner_id", sa.String(255), nullable=True,
                  comment="Identity bound at upload time"),
        sa.Column("relative_path", sa.String(255), nullable=False,
                  comment="Path relative to the storage root"),
        sa.Column("content_type", sa.String(100), nullable=False,
                  server_default=sa.text("'audio/webm'")),
        sa.Column("size_bytes", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "transcriptions",
        sa.Column("id", sa.Uuid(), nullable=False,
                  comment="Record identifier returned to the client"),
        sa.Column("owner_id", sa.String(255), nullable=True,
                  comment="Authenticated user that submitted the recording, if any"),
        sa.Column("original_text", sa.Text(), nullable=False,
                  comment="Transcript returned by the speech-to-text endpoint"),
        sa.Column("grammar_score", sa.Float(), nullable=False,
                  comment="Grammar score from the grading model (fallback 5)"),
        sa.Column("feedback", sa.Text(), nullable=False, server_default=sa.text("''"),
                  comment="Free-text rationale from the grading model"),
        sa.Column("issues", sa.JSON(), nullable=False,
                  comment="Ordered list of short issue descriptions"),
        sa.Column("audio_ref", sa.Uuid(), nullable=False,
                  comment="Storage reference of the analysed audio"),
        sa.Column("processing_time_ms", sa.Integer(), nullable=False,
                  server_default=sa.text("0"),
                  comment="Wall-clock milliseconds for the transcribe + grade round trip"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text("CURRENT_TIMESTAMP"),
                  comment="When this record was created (UTC)"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["audio_ref"], ["audio_blobs.id"]),
    )

    # History read: WHERE owner_id = ? ORDER BY created_at DESC LIMIT 10
    op.create_index(
        "idx_transcriptions_owner_created",
        "transcriptions",
        ["owner_id", sa.text("created_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_transcriptions_owner_created", table_name="transcriptions")
    op.drop_table("transcriptions")
    op.drop_table("audio_blobs")
    op.drop_table("upload_targets")
