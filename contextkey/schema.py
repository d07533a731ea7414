"""
Context Key Record Schema

The structured, versioned document a user carries between AI applications.
All models are frozen and reject unknown fields, so nothing can ride along
in a signed record without being covered by the signature.
"""

import re
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, JsonValue, model_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError


CONTEXT_KEY_VERSION = "1.0.0"

CKEY_FILE_EXTENSION = ".ckey"

MIN_PASSWORD_LENGTH = 8

DEFAULT_TONES = (
    "Professional and formal",
    "Friendly and conversational",
    "Concise and direct",
    "Detailed and explanatory",
    "Creative and expressive",
)

DEFAULT_DOMAINS = (
    "Software Development",
    "Data Science",
    "Marketing",
    "Finance",
    "Healthcare",
    "Education",
    "Design",
    "Research",
    "Business Strategy",
    "Technology",
)


class Persistence(str, Enum):
    """How long a consuming application may keep what it learns."""
    EPHEMERAL = "ephemeral"
    SESSION = "session"
    PERMANENT = "permanent"


class PiiHandling(str, Enum):
    """PII handling rules requested by the key owner."""
    STRICT = "strict"
    MODERATE = "moderate"
    PERMISSIVE = "permissive"


class DataSourceType(str, Enum):
    GOOGLE_DRIVE = "google_drive"
    NOTION = "notion"
    DROPBOX = "dropbox"
    LOCAL_FILE = "local_file"


class _Model(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class UserProfile(_Model):
    """User profile information stored in the context key."""
    display_name: str = Field(min_length=1, max_length=100)
    tone: str = Field(min_length=1, max_length=500)
    domains: List[str] = Field(min_length=1)

    @model_validator(mode="after")
    def _check_domains(self) -> "UserProfile":
        if any(not d for d in self.domains):
            raise ValueError("domains must not contain empty entries")
        return self


class Policies(_Model):
    """Privacy and data handling policies."""
    allow_writeback: bool
    persistence: Persistence
    pii_handling: PiiHandling


class DataSource(_Model):
    """Reference to an external data source."""
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    type: DataSourceType
    config: Dict[str, JsonValue] = Field(default_factory=dict)
    last_accessed: Optional[AwareDatetime] = None


class MemoryEntry(_Model):
    """A saved memory entry that can be written back to the key."""
    id: str = Field(min_length=1)
    content: str = Field(min_length=1)
    created_at: AwareDatetime
    tags: Optional[List[str]] = None
    source: Optional[str] = None


class ContextRecord(_Model):
    """
    The main context key document.

    Invariants:
    - version is present and non-empty
    - updated_at >= created_at
    - every nested element validates against its own model
    """
    version: str = Field(min_length=1)
    id: str = Field(min_length=1)
    created_at: AwareDatetime
    updated_at: AwareDatetime
    profile: UserProfile
    policies: Policies
    data_sources: List[DataSource] = Field(default_factory=list)
    memories: List[MemoryEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_timestamps(self) -> "ContextRecord":
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not be earlier than created_at")
        return self

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready dictionary; absent optionals are omitted."""
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def from_dict(cls, data: Any) -> "ContextRecord":
        """
        Validate a plain mapping into a record.

        Raises:
            ValidationError: on missing, extra, or malformed fields
        """
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise _translate(e) from None
        except RecursionError:
            raise ValidationError("record", "nested too deeply") from None


def _translate(error: PydanticValidationError) -> ValidationError:
    first = error.errors()[0]
    field = ".".join(str(p) for p in first.get("loc", ())) or "record"
    return ValidationError(field, first.get("msg", "invalid value"))


def create_context_record(
    display_name: str,
    tone: str,
    domains: List[str],
    *,
    now: datetime,
    allow_writeback: bool = False,
    persistence: Persistence = Persistence.SESSION,
    pii_handling: PiiHandling = PiiHandling.STRICT,
    data_sources: Optional[List[Dict[str, Any]]] = None,
    record_id: Optional[str] = None,
) -> ContextRecord:
    """
    Factory function to create a fresh context record.

    Args:
        display_name: Display name for the user
        tone: Preferred communication tone/style
        domains: Areas of expertise or interest
        now: Creation time, supplied by the caller's clock
        allow_writeback: Whether applications may append memories
        persistence: Data persistence preference
        pii_handling: PII handling rule
        data_sources: Optional data source references
        record_id: Optional id; a UUID4 is generated if not provided

    Returns:
        ContextRecord instance
    """
    return ContextRecord.from_dict({
        "version": CONTEXT_KEY_VERSION,
        "id": record_id or str(uuid.uuid4()),
        "created_at": now,
        "updated_at": now,
        "profile": {
            "display_name": display_name,
            "tone": tone,
            "domains": list(domains),
        },
        "policies": {
            "allow_writeback": allow_writeback,
            "persistence": persistence,
            "pii_handling": pii_handling,
        },
        "data_sources": data_sources or [],
        "memories": [],
    })


def append_memory(record: ContextRecord, entry: MemoryEntry, *, now: datetime) -> ContextRecord:
    """
    Return a new record with `entry` appended to its memories.

    The returned record is unsigned; it has to be sealed again.

    Raises:
        ValidationError: if the record's policy forbids writeback
    """
    if not record.policies.allow_writeback:
        raise ValidationError("policies.allow_writeback", "writeback is disabled for this key")

    data = record.model_dump()
    data["memories"] = data["memories"] + [entry.model_dump()]
    data["updated_at"] = now
    return ContextRecord.from_dict(data)


def suggested_filename(record: ContextRecord) -> str:
    """File name used when exporting a sealed key, e.g. ``ana_lee_context_key.ckey``."""
    stem = re.sub(r"\s+", "_", record.profile.display_name.strip()).lower()
    stem = re.sub(r"[^\w\-]", "", stem) or "context_key"
    return f"{stem}_context_key{CKEY_FILE_EXTENSION}"
