"""SQLAlchemy table definitions - dialect-agnostic (works with SQLite and PostgreSQL)."""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
)

metadata = MetaData()

# ============================================================================
# USERS TABLE
# ============================================================================
users_table = Table(
    "users",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", String(255), nullable=False),
    Column("display_name", String(100), nullable=False),
    Column("api_token_hash", String(64), nullable=True, unique=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

# ============================================================================
# DOCUMENTS TABLE
# ============================================================================
documents_table = Table(
    "documents",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("title", String(255), nullable=False),
    Column("content", Text, nullable=False, default=""),
    Column("slug", String(255), nullable=False, unique=True),
    Column("public_slug", String(255), nullable=True, unique=True),
    Column("status", String(32), nullable=False),  # DocumentStatus as string
    Column("hidden_from_public", Boolean, nullable=False, default=False),
    Column("word_count", Integer, nullable=False, default=0),
    Column("reading_time_minutes", Integer, nullable=False, default=0),
    Column("keystroke_count", Integer, nullable=False, default=0),
    Column("kudos_count", Integer, nullable=False, default=0),
    Column("published_at", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    CheckConstraint("word_count >= 0", name="ck_documents_word_count"),
    CheckConstraint("reading_time_minutes >= 0", name="ck_documents_reading_time"),
    CheckConstraint("keystroke_count >= 0", name="ck_documents_keystroke_count"),
    CheckConstraint("kudos_count >= 0", name="ck_documents_kudos_count"),
)

Index("idx_documents_user_id", documents_table.c.user_id)
Index("idx_documents_status", documents_table.c.status)
Index("idx_documents_published_at", documents_table.c.published_at)

# ============================================================================
# KUDOS TABLE
# ============================================================================
# One row per (post, visitor); documents.kudos_count mirrors the row count.
kudos_table = Table(
    "kudos",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("document_id", Uuid, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False),
    Column("visitor_id", String(64), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("document_id", "visitor_id", name="uq_kudos_document_visitor"),
)

# ============================================================================
# VERIFICATIONS TABLE
# ============================================================================
verifications_table = Table(
    "verifications",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("public_id", String(32), nullable=False, unique=True),
    Column("platform", String(32), nullable=False),
    Column("content_hash", String(255), nullable=False),
    Column("status", String(32), nullable=False),  # VerificationStatus as string
    Column("keystroke_stats", JSON, nullable=False),
    Column("paste_events", JSON, nullable=False),
    Column("start_at", DateTime(timezone=True), nullable=True),
    Column("end_at", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

Index("idx_verifications_user_created", verifications_table.c.user_id, verifications_table.c.created_at)

# ============================================================================
# KEYSTROKES TABLE
# ============================================================================
# timestamp is stored as float seconds since the epoch so ordering and
# millisecond conversion behave the same on every dialect.
keystrokes_table = Table(
    "keystrokes",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("document_id", Uuid, ForeignKey("documents.id", ondelete="CASCADE"), nullable=True),
    Column(
        "verification_id",
        Uuid,
        ForeignKey("verifications.id", ondelete="CASCADE"),
        nullable=True,
    ),
    Column("event_type", String(16), nullable=False),
    Column("key_code", String(32), nullable=False),
    Column("character", String(16), nullable=True),
    Column("timestamp", Float, nullable=False),
    Column("cursor_position", Integer, nullable=False),
    Column("sequence_number", Integer, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    CheckConstraint(
        "(document_id IS NULL) <> (verification_id IS NULL)",
        name="ck_keystrokes_single_owner",
    ),
    CheckConstraint("sequence_number >= 0", name="ck_keystrokes_sequence_number"),
    CheckConstraint("cursor_position >= 0", name="ck_keystrokes_cursor_position"),
    UniqueConstraint("document_id", "sequence_number", name="uq_keystrokes_document_sequence"),
    UniqueConstraint(
        "verification_id", "sequence_number", name="uq_keystrokes_verification_sequence"
    ),
)

Index("idx_keystrokes_timestamp", keystrokes_table.c.timestamp)
