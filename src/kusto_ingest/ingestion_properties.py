"""
Ingestion properties: target table, data format, column mappings and
reporting options.

Example:
    >>> props = IngestionProperties(
    ...     database="Samples",
    ...     table="StormEvents",
    ...     format=DataFormat.JSON,
    ...     ingestion_mapping_reference="StormEvents_json_mapping",
    ... )
    >>> props.validate_for_ingestion()
"""

from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, Field

from core.errors.exceptions import IngestionPropertiesValidationError


class DataFormat(str, Enum):
    """Source data formats accepted by the ingestion service."""

    CSV = "csv"
    TSV = "tsv"
    SCSV = "scsv"
    SOHSV = "sohsv"
    PSV = "psv"
    TXT = "txt"
    RAW = "raw"
    TSVE = "tsve"
    JSON = "json"
    SINGLEJSON = "singlejson"
    MULTIJSON = "multijson"
    AVRO = "avro"
    PARQUET = "parquet"
    SSTREAM = "sstream"
    ORC = "orc"
    APACHEAVRO = "apacheavro"
    W3CLOGFILE = "w3clogfile"

    @property
    def compressible(self) -> bool:
        """Binary formats carry their own compression and are sent as-is."""
        return self not in _BINARY_FORMATS


_BINARY_FORMATS = frozenset(
    {
        DataFormat.AVRO,
        DataFormat.APACHEAVRO,
        DataFormat.PARQUET,
        DataFormat.ORC,
        DataFormat.SSTREAM,
    }
)


class IngestionMappingKind(str, Enum):
    CSV = "Csv"
    JSON = "Json"
    AVRO = "Avro"
    PARQUET = "Parquet"
    SSTREAM = "SStream"
    ORC = "orc"
    APACHEAVRO = "ApacheAvro"
    W3CLOGFILE = "W3CLogFile"


_FORMAT_MAPPING_KINDS = {
    DataFormat.CSV: IngestionMappingKind.CSV,
    DataFormat.TSV: IngestionMappingKind.CSV,
    DataFormat.SCSV: IngestionMappingKind.CSV,
    DataFormat.SOHSV: IngestionMappingKind.CSV,
    DataFormat.PSV: IngestionMappingKind.CSV,
    DataFormat.TXT: IngestionMappingKind.CSV,
    DataFormat.RAW: IngestionMappingKind.CSV,
    DataFormat.TSVE: IngestionMappingKind.CSV,
    DataFormat.JSON: IngestionMappingKind.JSON,
    DataFormat.SINGLEJSON: IngestionMappingKind.JSON,
    DataFormat.MULTIJSON: IngestionMappingKind.JSON,
    DataFormat.AVRO: IngestionMappingKind.AVRO,
    DataFormat.PARQUET: IngestionMappingKind.PARQUET,
    DataFormat.SSTREAM: IngestionMappingKind.SSTREAM,
    DataFormat.ORC: IngestionMappingKind.ORC,
    DataFormat.APACHEAVRO: IngestionMappingKind.APACHEAVRO,
    DataFormat.W3CLOGFILE: IngestionMappingKind.W3CLOGFILE,
}

# Formats that can't be ingested without a column mapping
MAPPING_REQUIRED_FORMATS = frozenset(
    {DataFormat.JSON, DataFormat.SINGLEJSON, DataFormat.AVRO, DataFormat.ORC}
)


def data_format_mapping_kind(data_format: DataFormat | str) -> IngestionMappingKind:
    """Mapping kind a column mapping must have for ``data_format``."""
    try:
        return _FORMAT_MAPPING_KINDS[DataFormat(data_format)]
    except (KeyError, ValueError):
        raise IngestionPropertiesValidationError(
            f"Unsupported data format: {data_format}"
        ) from None


class ValidationOptions(IntEnum):
    DO_NOT_VALIDATE = 0
    VALIDATE_CSV_INPUT_CONSTANT_COLUMNS = 1
    VALIDATE_CSV_INPUT_COLUMN_LEVEL_ONLY = 2


class ValidationImplications(IntEnum):
    FAIL = 0
    BEST_EFFORT = 1


class ReportLevel(IntEnum):
    FAILURES_ONLY = 0
    DO_NOT_REPORT = 1
    FAILURES_AND_SUCCESSES = 2


class ReportMethod(IntEnum):
    QUEUE = 0


class FieldTransformation(str, Enum):
    PROPERTY_BAG_ARRAY_TO_DICTIONARY = "PropertyBagArrayToDictionary"
    DATETIME_FROM_UNIX_SECONDS = "DateTimeFromUnixSeconds"
    DATETIME_FROM_UNIX_MILLISECONDS = "DateTimeFromUnixMilliseconds"
    DATETIME_FROM_UNIX_MICROSECONDS = "DateTimeFromUnixMicroseconds"
    DATETIME_FROM_UNIX_NANOSECONDS = "DateTimeFromUnixNanoseconds"


class ConstantTransformation(str, Enum):
    SOURCE_LOCATION = "SourceLocation"
    SOURCE_LINE_NUMBER = "SourceLineNumber"


class ValidationPolicy(BaseModel):
    """Server-side validation of CSV input."""

    validation_options: ValidationOptions = ValidationOptions.DO_NOT_VALIDATE
    validation_implications: ValidationImplications = ValidationImplications.BEST_EFFORT

    def to_dict(self) -> dict[str, int]:
        return {
            "ValidationOptions": int(self.validation_options),
            "ValidationImplications": int(self.validation_implications),
        }


# Mapping kinds that locate a source value by JSON path / by field name
_PATH_KINDS = frozenset(
    {
        IngestionMappingKind.JSON,
        IngestionMappingKind.AVRO,
        IngestionMappingKind.APACHEAVRO,
        IngestionMappingKind.SSTREAM,
        IngestionMappingKind.PARQUET,
        IngestionMappingKind.ORC,
    }
)
_FIELD_KINDS = frozenset(
    {
        IngestionMappingKind.AVRO,
        IngestionMappingKind.APACHEAVRO,
        IngestionMappingKind.SSTREAM,
        IngestionMappingKind.PARQUET,
        IngestionMappingKind.ORC,
        IngestionMappingKind.W3CLOGFILE,
    }
)


class ColumnMapping(BaseModel):
    """
    One column of an inline ingestion mapping.

    Build instances with the factory methods; ``properties`` keys are the
    service's property names (Ordinal, Path, Field, ConstValue, Transform).
    """

    column_name: str = Field(..., min_length=1)
    mapping_kind: IngestionMappingKind
    csl_data_type: str | None = None
    properties: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def _build(
        cls,
        kind: IngestionMappingKind,
        column_name: str,
        csl_data_type: str | None,
        **properties: Any,
    ) -> "ColumnMapping":
        return cls(
            column_name=column_name,
            mapping_kind=kind,
            csl_data_type=csl_data_type,
            properties={k: v for k, v in properties.items() if v is not None},
        )

    @classmethod
    def csv_with_ordinal(
        cls, column_name: str, ordinal: int, csl_data_type: str | None = None
    ) -> "ColumnMapping":
        return cls._build(IngestionMappingKind.CSV, column_name, csl_data_type, Ordinal=ordinal)

    @classmethod
    def json_with_path(
        cls,
        column_name: str,
        path: str,
        csl_data_type: str | None = None,
        transform: FieldTransformation | None = None,
    ) -> "ColumnMapping":
        return cls.with_path(IngestionMappingKind.JSON, column_name, path, csl_data_type, transform)

    @classmethod
    def with_path(
        cls,
        kind: IngestionMappingKind,
        column_name: str,
        path: str,
        csl_data_type: str | None = None,
        transform: FieldTransformation | None = None,
    ) -> "ColumnMapping":
        if kind not in _PATH_KINDS:
            raise IngestionPropertiesValidationError(
                f"Mapping kind '{kind.value}' does not support path mappings"
            )
        return cls._build(kind, column_name, csl_data_type, Path=path, Transform=transform)

    @classmethod
    def with_field(
        cls,
        kind: IngestionMappingKind,
        column_name: str,
        field: str,
        csl_data_type: str | None = None,
        transform: FieldTransformation | None = None,
    ) -> "ColumnMapping":
        if kind not in _FIELD_KINDS:
            raise IngestionPropertiesValidationError(
                f"Mapping kind '{kind.value}' does not support field mappings"
            )
        return cls._build(kind, column_name, csl_data_type, Field=field, Transform=transform)

    @classmethod
    def with_constant_value(
        cls,
        kind: IngestionMappingKind,
        column_name: str,
        constant_value: str,
        csl_data_type: str | None = None,
    ) -> "ColumnMapping":
        return cls._build(kind, column_name, csl_data_type, ConstValue=constant_value)

    @classmethod
    def with_transform(
        cls,
        kind: IngestionMappingKind,
        column_name: str,
        transform: ConstantTransformation,
        csl_data_type: str | None = None,
    ) -> "ColumnMapping":
        if kind == IngestionMappingKind.CSV:
            raise IngestionPropertiesValidationError("Csv mappings do not support transforms")
        return cls._build(kind, column_name, csl_data_type, Transform=transform)

    def to_api_mapping(self) -> dict[str, Any]:
        """Wire form: ``{"Column", "DataType"?, "Properties"?}`` with string property values."""
        result: dict[str, Any] = {"Column": self.column_name}
        if self.csl_data_type:
            result["DataType"] = self.csl_data_type
        if self.properties:
            result["Properties"] = {
                key: value.value if isinstance(value, Enum) else str(value)
                for key, value in self.properties.items()
            }
        return result


class IngestionProperties(BaseModel):
    """
    Where and how a source is ingested.

    Attributes:
        database: Target database
        table: Target table
        format: Source data format
        ingestion_mapping_columns: Inline column mapping
        ingestion_mapping_reference: Name of a mapping pre-created on the table
        ingestion_mapping_kind: Kind of the referenced/inline mapping
        additional_tags: Extent tags
        ingest_if_not_exists: Skip ingestion if an extent has any of these ingest-by tags
        ingest_by_tags: Tags added as ``ingest-by:<tag>``
        drop_by_tags: Tags added as ``drop-by:<tag>``
        flush_immediately: Bypass aggregation on the service
        report_level: Which outcomes are reported to the status queues
        report_method: How outcomes are reported
        validation_policy: CSV validation settings
        additional_properties: Extra properties passed through to the service
    """

    database: str | None = None
    table: str | None = None
    format: DataFormat = DataFormat.CSV
    ingestion_mapping_columns: list[ColumnMapping] | None = None
    ingestion_mapping_reference: str | None = None
    ingestion_mapping_kind: IngestionMappingKind | None = None
    additional_tags: list[str] | None = None
    ingest_if_not_exists: list[str] | None = None
    ingest_by_tags: list[str] | None = None
    drop_by_tags: list[str] | None = None
    flush_immediately: bool = False
    report_level: ReportLevel = ReportLevel.DO_NOT_REPORT
    report_method: ReportMethod = ReportMethod.QUEUE
    validation_policy: ValidationPolicy | None = None
    additional_properties: dict[str, Any] | None = None

    def validate_for_ingestion(self) -> None:
        """Raise IngestionPropertiesValidationError if the properties can't be ingested."""
        if not self.database:
            raise IngestionPropertiesValidationError("Must define a target database")
        if not self.table:
            raise IngestionPropertiesValidationError("Must define a target table")
        if not self.format:
            raise IngestionPropertiesValidationError("Must define a data format")

        if self.ingestion_mapping_columns is None and not self.ingestion_mapping_reference:
            if self.ingestion_mapping_kind:
                raise IngestionPropertiesValidationError(
                    "Cannot define ingestion_mapping_kind without either "
                    "ingestion_mapping_columns or ingestion_mapping_reference"
                )
            if self.format in MAPPING_REQUIRED_FORMATS:
                raise IngestionPropertiesValidationError(
                    f"Mapping reference required for format '{self.format.value}'."
                )
            return

        mapping_kind = data_format_mapping_kind(self.format)
        if self.ingestion_mapping_kind and self.ingestion_mapping_kind != mapping_kind:
            raise IngestionPropertiesValidationError(
                f"Mapping kind '{self.ingestion_mapping_kind.value}' does not match format "
                f"'{self.format.value}' (should be '{mapping_kind.value}')"
            )

        if self.ingestion_mapping_columns is not None:
            if self.ingestion_mapping_reference:
                raise IngestionPropertiesValidationError(
                    "Cannot define both ingestion_mapping_columns and ingestion_mapping_reference"
                )
            if not self.ingestion_mapping_columns:
                raise IngestionPropertiesValidationError("Must define at least one column mapping")

            wrong = [
                f"Mapping kind mismatch for column '{m.column_name}' - expected data format "
                f"kind - '{mapping_kind.value}', but was '{m.mapping_kind.value}'"
                for m in self.ingestion_mapping_columns
                if m.mapping_kind != mapping_kind
            ]
            if wrong:
                raise IngestionPropertiesValidationError("Invalid columns:\n" + "\n".join(wrong))

    @property
    def effective_mapping_kind(self) -> IngestionMappingKind | None:
        """Mapping kind sent to the service, derived from the format when unset."""
        if self.ingestion_mapping_kind:
            return self.ingestion_mapping_kind
        if self.ingestion_mapping_columns is not None or self.ingestion_mapping_reference:
            return data_format_mapping_kind(self.format)
        return None

    def merge(self, other: "IngestionProperties | None") -> "IngestionProperties":
        """Copy of self with every field explicitly set on ``other`` taking precedence."""
        if other is None:
            return self.model_copy(deep=True)
        update = {name: getattr(other, name) for name in other.model_fields_set}
        merged = self.model_copy(deep=True, update=update)
        return merged


__all__ = [
    "DataFormat",
    "IngestionMappingKind",
    "MAPPING_REQUIRED_FORMATS",
    "data_format_mapping_kind",
    "ValidationOptions",
    "ValidationImplications",
    "ValidationPolicy",
    "ReportLevel",
    "ReportMethod",
    "FieldTransformation",
    "ConstantTransformation",
    "ColumnMapping",
    "IngestionProperties",
]
