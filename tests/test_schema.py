"""
Context record schema tests.
"""

import unittest
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError as PydanticValidationError

from contextkey import (
    CONTEXT_KEY_VERSION,
    ContextRecord,
    MemoryEntry,
    Persistence,
    PiiHandling,
    ValidationError,
    append_memory,
    create_context_record,
    suggested_filename,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def record_dict(**overrides):
    data = {
        "version": "1.0.0",
        "id": "rec-1",
        "created_at": "2026-03-01T12:00:00Z",
        "updated_at": "2026-03-01T12:00:00Z",
        "profile": {"display_name": "Ana", "tone": "concise", "domains": ["ml"]},
        "policies": {"allow_writeback": True, "persistence": "session", "pii_handling": "strict"},
        "data_sources": [
            {"id": "ds-1", "name": "Notes", "type": "notion", "config": {"workspace": "ana"}}
        ],
        "memories": [
            {"id": "m-1", "content": "Prefers bullet points", "created_at": "2026-03-01T12:00:00Z"}
        ],
    }
    data.update(overrides)
    return data


class TestContextRecord(unittest.TestCase):
    """Structure and invariants of ContextRecord."""

    def test_valid_record(self):
        record = ContextRecord.from_dict(record_dict())
        self.assertEqual(record.profile.domains, ["ml"])
        self.assertEqual(record.policies.persistence, Persistence.SESSION)
        self.assertEqual(record.data_sources[0].config, {"workspace": "ana"})

    def test_to_dict_omits_unset_optionals(self):
        data = ContextRecord.from_dict(record_dict()).to_dict()
        self.assertNotIn("tags", data["memories"][0])
        self.assertNotIn("last_accessed", data["data_sources"][0])

    def test_to_dict_round_trip(self):
        record = ContextRecord.from_dict(record_dict())
        self.assertEqual(ContextRecord.from_dict(record.to_dict()), record)

    def test_unknown_top_level_field_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            ContextRecord.from_dict(record_dict(signature_override="x"))
        self.assertEqual(ctx.exception.field, "signature_override")

    def test_unknown_nested_field_rejected(self):
        data = record_dict()
        data["profile"]["nickname"] = "A"
        with self.assertRaises(ValidationError) as ctx:
            ContextRecord.from_dict(data)
        self.assertEqual(ctx.exception.field, "profile.nickname")

    def test_missing_version_rejected(self):
        data = record_dict()
        del data["version"]
        with self.assertRaises(ValidationError):
            ContextRecord.from_dict(data)

    def test_empty_version_rejected(self):
        with self.assertRaises(ValidationError):
            ContextRecord.from_dict(record_dict(version=""))

    def test_updated_before_created_rejected(self):
        with self.assertRaises(ValidationError):
            ContextRecord.from_dict(record_dict(updated_at="2026-02-28T12:00:00Z"))

    def test_naive_timestamp_rejected(self):
        with self.assertRaises(ValidationError):
            ContextRecord.from_dict(record_dict(created_at="2026-03-01T12:00:00"))

    def test_invalid_enum_rejected(self):
        data = record_dict()
        data["policies"]["pii_handling"] = "lenient"
        with self.assertRaises(ValidationError) as ctx:
            ContextRecord.from_dict(data)
        self.assertEqual(ctx.exception.field, "policies.pii_handling")

    def test_profile_constraints(self):
        for profile in (
            {"display_name": "", "tone": "concise", "domains": ["ml"]},
            {"display_name": "A" * 101, "tone": "concise", "domains": ["ml"]},
            {"display_name": "Ana", "tone": "", "domains": ["ml"]},
            {"display_name": "Ana", "tone": "concise", "domains": []},
            {"display_name": "Ana", "tone": "concise", "domains": [""]},
        ):
            with self.subTest(profile=profile):
                with self.assertRaises(ValidationError):
                    ContextRecord.from_dict(record_dict(profile=profile))

    def test_invalid_list_element_rejected(self):
        data = record_dict()
        data["memories"].append({"id": "m-2", "content": "", "created_at": "2026-03-01T12:00:00Z"})
        with self.assertRaises(ValidationError) as ctx:
            ContextRecord.from_dict(data)
        self.assertTrue(ctx.exception.field.startswith("memories.1"))

    def test_non_json_config_value_rejected(self):
        data = record_dict()
        since = datetime(2026, 1, 1, 0, 0, 0, 500000, tzinfo=timezone.utc)
        data["data_sources"][0]["config"] = {"since": since}
        with self.assertRaises(ValidationError) as ctx:
            ContextRecord.from_dict(data)
        self.assertTrue(ctx.exception.field.startswith("data_sources.0.config"))

    def test_nested_json_config_accepted(self):
        data = record_dict()
        data["data_sources"][0]["config"] = {
            "paths": ["/a", "/b"],
            "opts": {"depth": 2, "follow": False, "cap": None},
        }
        record = ContextRecord.from_dict(data)
        self.assertEqual(record.data_sources[0].config["opts"]["depth"], 2)

    def test_invalid_data_source_type_rejected(self):
        data = record_dict()
        data["data_sources"][0]["type"] = "ftp"
        with self.assertRaises(ValidationError):
            ContextRecord.from_dict(data)

    def test_record_is_frozen(self):
        record = ContextRecord.from_dict(record_dict())
        with self.assertRaises(PydanticValidationError):
            record.version = "2.0.0"


class TestFactories(unittest.TestCase):
    """create_context_record, append_memory, suggested_filename."""

    def test_create_defaults(self):
        record = create_context_record("Ana", "concise", ["ml"], now=NOW)
        self.assertEqual(record.version, CONTEXT_KEY_VERSION)
        self.assertEqual(record.created_at, NOW)
        self.assertEqual(record.updated_at, NOW)
        self.assertFalse(record.policies.allow_writeback)
        self.assertEqual(record.policies.persistence, Persistence.SESSION)
        self.assertEqual(record.policies.pii_handling, PiiHandling.STRICT)
        self.assertEqual(record.memories, [])
        self.assertTrue(record.id)

    def test_create_generates_unique_ids(self):
        a = create_context_record("Ana", "concise", ["ml"], now=NOW)
        b = create_context_record("Ana", "concise", ["ml"], now=NOW)
        self.assertNotEqual(a.id, b.id)

    def test_create_validates(self):
        with self.assertRaises(ValidationError):
            create_context_record("Ana", "concise", [], now=NOW)

    def test_append_memory_requires_writeback(self):
        record = create_context_record("Ana", "concise", ["ml"], now=NOW)
        entry = MemoryEntry(id="m-1", content="Likes tables", created_at=NOW)
        with self.assertRaises(ValidationError) as ctx:
            append_memory(record, entry, now=NOW)
        self.assertEqual(ctx.exception.field, "policies.allow_writeback")

    def test_append_memory_returns_new_record(self):
        record = create_context_record("Ana", "concise", ["ml"], now=NOW, allow_writeback=True)
        later = NOW + timedelta(hours=1)
        entry = MemoryEntry(id="m-1", content="Likes tables", created_at=later, tags=["format"])

        updated = append_memory(record, entry, now=later)

        self.assertEqual(record.memories, [])
        self.assertEqual(updated.memories, [entry])
        self.assertEqual(updated.updated_at, later)
        self.assertEqual(updated.created_at, NOW)
        self.assertEqual(updated.id, record.id)

    def test_append_memory_cannot_rewind_clock(self):
        record = create_context_record("Ana", "concise", ["ml"], now=NOW, allow_writeback=True)
        entry = MemoryEntry(id="m-1", content="Likes tables", created_at=NOW)
        with self.assertRaises(ValidationError):
            append_memory(record, entry, now=NOW - timedelta(days=1))

    def test_suggested_filename(self):
        record = create_context_record("Ana  Lee", "concise", ["ml"], now=NOW)
        self.assertEqual(suggested_filename(record), "ana_lee_context_key.ckey")

    def test_suggested_filename_strips_path_characters(self):
        record = create_context_record("../etc/passwd", "concise", ["ml"], now=NOW)
        name = suggested_filename(record)
        self.assertNotIn("/", name)
        self.assertTrue(name.endswith("_context_key.ckey"))


if __name__ == "__main__":
    unittest.main()
