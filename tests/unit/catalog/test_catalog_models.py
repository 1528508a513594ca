"""Unit tests for schema snapshot models."""

from dataclasses import replace
from datetime import datetime

from schema_migrator.catalog import SchemaSnapshot


class TestSchemaSnapshot:
    """Tests for SchemaSnapshot lookups and fingerprints."""

    def test_lookups(self, church_schema):
        assert church_schema.table_names == ["individuals", "events", "attendance"]
        assert church_schema.has_table("events")
        assert not church_schema.has_table("households")
        assert church_schema.row_count("attendance") == 3000
        assert church_schema.row_count("households") is None
        assert [c.name for c in church_schema.columns_for("attendance")] == [
            "id", "individual_id", "event_id"
        ]
        assert church_schema.get_column("individuals", "missing") is None
        assert len(church_schema.foreign_keys_for("attendance")) == 2

    def test_columns_sorted_by_position(self, church_schema):
        shuffled = replace(church_schema, columns=tuple(reversed(church_schema.columns)))

        assert [c.name for c in shuffled.columns_for("events")] == ["id", "name", "event_date"]

    def test_without_tables(self, church_schema):
        snapshot = church_schema.without_tables({"attendance"})

        assert snapshot.table_names == ["individuals", "events"]
        assert snapshot.columns_for("attendance") == []
        assert snapshot.indexes_for("attendance") == []
        assert snapshot.foreign_keys == ()

    def test_fingerprint_ignores_row_counts(self, church_schema):
        recounted = replace(
            church_schema,
            tables=tuple(replace(t, row_count=1) for t in church_schema.tables),
            captured_at=datetime(2020, 1, 1),
        )

        assert recounted.fingerprint() == church_schema.fingerprint()

    def test_fingerprint_tracks_structure(self, church_schema, visitor_schema):
        assert visitor_schema.fingerprint() != church_schema.fingerprint()

    def test_fingerprint_tracks_index_method_fk_actions_and_extra(self, church_schema):
        hashed = replace(
            church_schema,
            indexes=tuple(
                replace(i, method="hash") if i.name == "idx_attendance_event" else i
                for i in church_schema.indexes
            ),
        )
        restricted = replace(
            church_schema,
            foreign_keys=tuple(
                replace(fk, on_delete="RESTRICT", on_update="CASCADE")
                for fk in church_schema.foreign_keys
            ),
        )
        plain_ids = replace(
            church_schema,
            columns=tuple(replace(c, extra="") for c in church_schema.columns),
        )

        fingerprints = {
            s.fingerprint() for s in (church_schema, hashed, restricted, plain_ids)
        }
        assert len(fingerprints) == 4

    def test_fk_action_case_does_not_change_fingerprint(self, church_schema):
        lowered = replace(
            church_schema,
            foreign_keys=tuple(
                replace(fk, on_delete=fk.on_delete.lower()) for fk in church_schema.foreign_keys
            ),
        )

        assert lowered.fingerprint() == church_schema.fingerprint()

    def test_from_dict_snake_case(self, church_schema):
        restored = SchemaSnapshot.from_dict(church_schema.to_dict())

        assert restored.structure() == church_schema.structure()
        assert restored.get_column("individuals", "id").is_primary_key

    def test_from_dict_camel_case(self):
        snapshot = SchemaSnapshot.from_dict({
            "tables": [{"name": "attendance", "tableRows": 12}],
            "columns": [
                {"tableName": "attendance", "name": "event_id", "dataType": "int",
                 "isNullable": "NO", "columnKey": "MUL", "position": 2},
            ],
            "indexes": [
                {"tableName": "attendance", "name": "idx_attendance_lookup",
                 "columnName": "event_id", "nonUnique": 1},
                {"tableName": "attendance", "name": "idx_attendance_lookup",
                 "columnName": "individual_id", "nonUnique": 1},
            ],
            "foreignKeys": [
                {"tableName": "attendance", "name": "fk_attendance_event",
                 "columnName": "event_id", "referencedTableName": "events",
                 "referencedColumnName": "id", "onDelete": "CASCADE"},
            ],
        })

        assert snapshot.row_count("attendance") == 12
        column = snapshot.get_column("attendance", "event_id")
        assert not column.is_nullable
        assert column.ordinal_position == 2
        assert column.key == "MUL"
        (index,) = snapshot.indexes
        assert index.columns == ("event_id", "individual_id")
        assert not index.is_unique
        (fk,) = snapshot.foreign_keys
        assert fk.referenced_table == "events"
        assert fk.referenced_column == "id"
        assert fk.on_delete == "CASCADE"
        assert fk.on_update == "NO ACTION"

    def test_to_dict_is_json_friendly(self, church_schema):
        data = church_schema.to_dict()

        assert isinstance(data["captured_at"], str)
        assert data["indexes"][0]["columns"] == ["id"]
