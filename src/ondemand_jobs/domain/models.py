"""Domain models for on-demand job submission."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List, Union
import re

from .exceptions import ParseError


MappingLike = Union["PathMapping", Dict[str, Any]]

# fromisoformat() before 3.11 only takes 3 or 6 fraction digits; the service sends up to 7
_FRACTION_RE = re.compile(r'(T\d{2}:\d{2}:\d{2})\.(\d+)')


@dataclass(frozen=True)
class PathMapping:
    """Maps one input field to one output field."""

    source: str
    destination: str
    default_value: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PathMapping":
        """Build from wire keys (source, destination, defaultValue)."""
        return cls(
            source=data.get('source'),
            destination=data.get('destination'),
            # Empty defaults are treated as "no default"
            default_value=data.get('defaultValue') or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to wire dict."""
        return {
            'source': self.source,
            'destination': self.destination,
            'defaultValue': self.default_value,
        }


def _coerce_mappings(items: Optional[List[MappingLike]]) -> List[PathMapping]:
    if items is None:
        return []
    result = []
    for item in items:
        if isinstance(item, PathMapping):
            result.append(item)
        elif isinstance(item, dict):
            result.append(PathMapping.from_dict(item))
        else:
            raise TypeError(f"Invalid path mapping: {item!r}")
    return result


@dataclass
class Metadata:
    """Describes the shape of a job submission."""

    version: Optional[str]
    mime_type: Optional[str]
    name: Optional[str]
    mapping: List[PathMapping] = field(default_factory=list)
    output_mapping: List[PathMapping] = field(default_factory=list)
    data: Optional[str] = None

    # Optional grouping / versioning
    group_id: Optional[str] = None
    is_grouped: Optional[bool] = None
    version_id: Optional[str] = None
    container_id: Optional[str] = None

    # (attribute, wire key) pairs for the optional fields
    _OPTIONAL_KEYS = (
        ('group_id', 'groupId'),
        ('is_grouped', 'isGrouped'),
        ('version_id', 'versionId'),
        ('container_id', 'containerId'),
    )

    def __post_init__(self):
        self.mapping = _coerce_mappings(self.mapping)
        self.output_mapping = _coerce_mappings(self.output_mapping)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Metadata":
        """Build from a camelCase wire dict."""
        return cls(
            version=data.get('version'),
            mime_type=data.get('mimeType'),
            name=data.get('name'),
            mapping=data.get('mapping'),
            output_mapping=data.get('outputMapping'),
            data=data.get('data'),
            group_id=data.get('groupId'),
            is_grouped=data.get('isGrouped'),
            version_id=data.get('versionId'),
            container_id=data.get('containerId'),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to wire dict. Optional keys are emitted only when set."""
        result = {
            'version': self.version,
            'mimeType': self.mime_type,
            'name': self.name,
            'mapping': [m.to_dict() for m in self.mapping],
            'outputMapping': [m.to_dict() for m in self.output_mapping],
            'data': self.data,
        }

        for attr, key in self._OPTIONAL_KEYS:
            value = getattr(self, attr)
            if value is not None:
                result[key] = value

        return result

    def to_form_fields(self) -> Dict[str, Any]:
        """Fields for multipart encoding (sequences stay lists of records)."""
        return self.to_dict()


def _parse_timestamp(value: Any, key: str) -> Optional[datetime]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ParseError(f"Invalid timestamp for {key}: {value!r}")
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    text = _FRACTION_RE.sub(
        lambda m: f"{m.group(1)}.{m.group(2)[:6].ljust(6, '0')}", text
    )
    try:
        return datetime.fromisoformat(text)
    except ValueError as e:
        raise ParseError(f"Invalid timestamp for {key}: {value!r}") from e


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class JobResult:
    """Remote job record, parsed from a service response."""

    id: Any
    created_at: Optional[datetime]
    last_updated_at: Optional[datetime]
    name: Optional[str]
    input_file_name: Optional[str]
    input_mime: Optional[str]
    billed_usage: Optional[float]
    record_count: Optional[int]
    record_group_count: Optional[int]
    processing_time_ms: Optional[float]
    status: Optional[str]
    error_message: Optional[str]
    version_number: Optional[str]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobResult":
        """Build from the capitalized wire keys."""
        if not isinstance(data, dict):
            raise ParseError(f"Job data must be an object, got {type(data).__name__}")

        return cls(
            id=data.get('Id'),
            created_at=_parse_timestamp(data.get('CreatedDateUtc'), 'CreatedDateUtc'),
            last_updated_at=_parse_timestamp(data.get('LastUpdatedUtc'), 'LastUpdatedUtc'),
            name=data.get('Name'),
            input_file_name=data.get('InputFileName'),
            input_mime=data.get('InputMime'),
            billed_usage=data.get('BilledUsage'),
            record_count=data.get('RecordCount'),
            record_group_count=data.get('RecordGroupCount'),
            processing_time_ms=data.get('ProcessingTimeMS'),
            status=data.get('Status'),
            error_message=data.get('ErrorMessage'),
            version_number=data.get('VersionNumber'),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to wire dict."""
        return {
            'Id': self.id,
            'CreatedDateUtc': _format_timestamp(self.created_at),
            'LastUpdatedUtc': _format_timestamp(self.last_updated_at),
            'Name': self.name,
            'InputFileName': self.input_file_name,
            'InputMime': self.input_mime,
            'BilledUsage': self.billed_usage,
            'RecordCount': self.record_count,
            'RecordGroupCount': self.record_group_count,
            'ProcessingTimeMS': self.processing_time_ms,
            'Status': self.status,
            'ErrorMessage': self.error_message,
            'VersionNumber': self.version_number,
        }

    def __str__(self) -> str:
        return f"Job #{self.id} ({self.status})"


@dataclass(frozen=True)
class ContainerResult:
    """Outcome envelope of one submission or status check."""

    data: Optional[JobResult]
    is_error: bool = False
    error_message: Optional[str] = None

    def __post_init__(self):
        if not self.is_error and self.data is None:
            raise ParseError("Result envelope has no Data although IsError is false")

    @property
    def succeeded(self) -> bool:
        """Check if the service reported success."""
        return not self.is_error

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContainerResult":
        """Build from the {Data, IsError, ErrorMessage} envelope."""
        if not isinstance(data, dict):
            raise ParseError(
                f"Result envelope must be an object, got {type(data).__name__}"
            )

        job_data = data.get('Data')
        return cls(
            data=JobResult.from_dict(job_data) if job_data is not None else None,
            is_error=bool(data.get('IsError', False)),
            error_message=data.get('ErrorMessage'),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to the wire envelope."""
        return {
            'Data': self.data.to_dict() if self.data is not None else None,
            'IsError': self.is_error,
            'ErrorMessage': self.error_message,
        }


class JobState(str, Enum):
    """Lifecycle state of a job submission."""

    CREATED = "created"
    SUBMITTING = "submitting"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


@dataclass(frozen=True)
class JobSnapshot:
    """Immutable view of a job's lifecycle state."""

    state: JobState
    job_id: Optional[str] = None
    status: Optional[str] = None
    result_uri: Optional[str] = None
    checks: int = 0
    error: Optional[str] = None

    def __str__(self) -> str:
        return f"Job {self.job_id or '<unsubmitted>'} [{self.state.value}]"
