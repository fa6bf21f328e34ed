"""
Tests for ingestion properties, column mappings and validation.
"""

import pytest

from core.errors.exceptions import IngestionPropertiesValidationError
from kusto_ingest.ingestion_properties import (
    ColumnMapping,
    ConstantTransformation,
    DataFormat,
    FieldTransformation,
    IngestionMappingKind,
    IngestionProperties,
    ReportLevel,
    ValidationImplications,
    ValidationOptions,
    ValidationPolicy,
    data_format_mapping_kind,
)


class TestDataFormat:

    @pytest.mark.parametrize(
        "fmt,kind",
        [
            (DataFormat.CSV, IngestionMappingKind.CSV),
            (DataFormat.PSV, IngestionMappingKind.CSV),
            (DataFormat.MULTIJSON, IngestionMappingKind.JSON),
            (DataFormat.APACHEAVRO, IngestionMappingKind.APACHEAVRO),
            (DataFormat.ORC, IngestionMappingKind.ORC),
            ("w3clogfile", IngestionMappingKind.W3CLOGFILE),
        ],
    )
    def test_mapping_kind(self, fmt, kind):
        assert data_format_mapping_kind(fmt) is kind

    def test_unsupported_format(self):
        with pytest.raises(IngestionPropertiesValidationError, match="Unsupported data format: xml"):
            data_format_mapping_kind("xml")

    def test_binary_formats_not_compressible(self):
        assert DataFormat.CSV.compressible
        assert DataFormat.JSON.compressible
        assert not DataFormat.PARQUET.compressible
        assert not DataFormat.AVRO.compressible


class TestColumnMapping:

    def test_csv_ordinal(self):
        mapping = ColumnMapping.csv_with_ordinal("Name", 2, "string")
        assert mapping.to_api_mapping() == {
            "Column": "Name",
            "DataType": "string",
            "Properties": {"Ordinal": "2"},
        }

    def test_json_path_with_transform(self):
        mapping = ColumnMapping.json_with_path(
            "When", "$.ts", transform=FieldTransformation.DATETIME_FROM_UNIX_SECONDS
        )
        assert mapping.mapping_kind is IngestionMappingKind.JSON
        assert mapping.to_api_mapping() == {
            "Column": "When",
            "Properties": {"Path": "$.ts", "Transform": "DateTimeFromUnixSeconds"},
        }

    def test_field_mapping(self):
        mapping = ColumnMapping.with_field(IngestionMappingKind.PARQUET, "Id", "id", "long")
        assert mapping.properties == {"Field": "id"}

    def test_constant_and_source_transforms(self):
        constant = ColumnMapping.with_constant_value(IngestionMappingKind.CSV, "Src", "fixed")
        line = ColumnMapping.with_transform(
            IngestionMappingKind.JSON, "Line", ConstantTransformation.SOURCE_LINE_NUMBER
        )
        assert constant.to_api_mapping()["Properties"] == {"ConstValue": "fixed"}
        assert line.to_api_mapping()["Properties"] == {"Transform": "SourceLineNumber"}

    def test_no_properties_omitted(self):
        mapping = ColumnMapping(column_name="A", mapping_kind=IngestionMappingKind.CSV)
        assert mapping.to_api_mapping() == {"Column": "A"}

    def test_path_not_supported_for_csv(self):
        with pytest.raises(IngestionPropertiesValidationError, match="path mappings"):
            ColumnMapping.with_path(IngestionMappingKind.CSV, "A", "$.a")

    def test_field_not_supported_for_json(self):
        with pytest.raises(IngestionPropertiesValidationError, match="field mappings"):
            ColumnMapping.with_field(IngestionMappingKind.JSON, "A", "a")

    def test_transform_not_supported_for_csv(self):
        with pytest.raises(IngestionPropertiesValidationError):
            ColumnMapping.with_transform(
                IngestionMappingKind.CSV, "A", ConstantTransformation.SOURCE_LOCATION
            )


class TestValidationPolicy:

    def test_to_dict(self):
        policy = ValidationPolicy(
            validation_options=ValidationOptions.VALIDATE_CSV_INPUT_CONSTANT_COLUMNS,
            validation_implications=ValidationImplications.FAIL,
        )
        assert policy.to_dict() == {"ValidationOptions": 1, "ValidationImplications": 0}


class TestValidateForIngestion:

    def test_minimal_csv(self):
        IngestionProperties(database="db", table="t").validate_for_ingestion()

    @pytest.mark.parametrize(
        "kwargs,message",
        [
            ({"table": "t"}, "Must define a target database"),
            ({"database": "db"}, "Must define a target table"),
        ],
    )
    def test_target_required(self, kwargs, message):
        with pytest.raises(IngestionPropertiesValidationError, match=message):
            IngestionProperties(**kwargs).validate_for_ingestion()

    def test_kind_without_mapping(self):
        props = IngestionProperties(
            database="db", table="t", ingestion_mapping_kind=IngestionMappingKind.CSV
        )
        with pytest.raises(IngestionPropertiesValidationError, match="Cannot define ingestion_mapping_kind"):
            props.validate_for_ingestion()

    @pytest.mark.parametrize("fmt", [DataFormat.JSON, DataFormat.AVRO, DataFormat.ORC])
    def test_mapping_required(self, fmt):
        props = IngestionProperties(database="db", table="t", format=fmt)
        with pytest.raises(IngestionPropertiesValidationError, match="Mapping reference required"):
            props.validate_for_ingestion()

    def test_multijson_without_mapping_ok(self):
        IngestionProperties(database="db", table="t", format=DataFormat.MULTIJSON).validate_for_ingestion()

    def test_json_with_reference(self):
        IngestionProperties(
            database="db",
            table="t",
            format=DataFormat.JSON,
            ingestion_mapping_reference="map",
            ingestion_mapping_kind=IngestionMappingKind.JSON,
        ).validate_for_ingestion()

    def test_kind_must_match_format(self):
        props = IngestionProperties(
            database="db",
            table="t",
            format=DataFormat.JSON,
            ingestion_mapping_reference="map",
            ingestion_mapping_kind=IngestionMappingKind.CSV,
        )
        with pytest.raises(IngestionPropertiesValidationError, match="should be 'Json'"):
            props.validate_for_ingestion()

    def test_columns_and_reference_exclusive(self):
        props = IngestionProperties(
            database="db",
            table="t",
            ingestion_mapping_columns=[ColumnMapping.csv_with_ordinal("A", 0)],
            ingestion_mapping_reference="map",
        )
        with pytest.raises(IngestionPropertiesValidationError, match="Cannot define both"):
            props.validate_for_ingestion()

    def test_empty_columns(self):
        props = IngestionProperties(database="db", table="t", ingestion_mapping_columns=[])
        with pytest.raises(IngestionPropertiesValidationError, match="at least one column"):
            props.validate_for_ingestion()

    def test_column_kinds_must_match(self):
        props = IngestionProperties(
            database="db",
            table="t",
            format=DataFormat.CSV,
            ingestion_mapping_columns=[
                ColumnMapping.csv_with_ordinal("A", 0),
                ColumnMapping.json_with_path("B", "$.b"),
            ],
        )
        with pytest.raises(IngestionPropertiesValidationError) as exc_info:
            props.validate_for_ingestion()

        message = str(exc_info.value)
        assert message.startswith("Invalid columns:\n")
        assert "'B'" in message
        assert "'A'" not in message


class TestEffectiveMappingKind:

    def test_none_without_mapping(self):
        assert IngestionProperties(database="db", table="t").effective_mapping_kind is None

    def test_derived_from_format(self):
        props = IngestionProperties(format=DataFormat.MULTIJSON, ingestion_mapping_reference="m")
        assert props.effective_mapping_kind is IngestionMappingKind.JSON

    def test_explicit_kind_wins(self):
        props = IngestionProperties(
            ingestion_mapping_reference="m", ingestion_mapping_kind=IngestionMappingKind.AVRO
        )
        assert props.effective_mapping_kind is IngestionMappingKind.AVRO


class TestMerge:

    def test_explicit_fields_override(self):
        defaults = IngestionProperties(
            database="db", table="t", flush_immediately=True, additional_tags=["a"]
        )
        merged = defaults.merge(
            IngestionProperties(table="other", report_level=ReportLevel.FAILURES_AND_SUCCESSES)
        )

        assert merged.database == "db"
        assert merged.table == "other"
        assert merged.flush_immediately is True
        assert merged.report_level is ReportLevel.FAILURES_AND_SUCCESSES

    def test_unset_defaults_do_not_override(self):
        defaults = IngestionProperties(database="db", format=DataFormat.JSON)
        merged = defaults.merge(IngestionProperties(table="t"))
        assert merged.format is DataFormat.JSON

    def test_merge_none_copies(self):
        defaults = IngestionProperties(database="db", additional_tags=["a"])
        merged = defaults.merge(None)
        merged.additional_tags.append("b")

        assert merged is not defaults
        assert defaults.additional_tags == ["a"]
