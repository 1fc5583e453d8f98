"""
Schema validation for PRD and status documents.

Every JSON document read from disk passes through here. The files are
written by another process, so a failure is reported as a typed error the
caller can turn into "keep the previous value" rather than a crash.
"""

import json
from pathlib import Path
from typing import Any, Optional

import jsonschema


class ValidationError(Exception):
    """Schema validation failed."""

    def __init__(self, schema_name: str, message: str, path: Optional[str] = None):
        self.schema_name = schema_name
        self.path = path
        super().__init__(f"[{schema_name}] {message}" + (f" at {path}" if path else ""))


class DocumentError(Exception):
    """A document could not be loaded."""

    def __init__(self, filepath: Path, reason: str):
        self.filepath = filepath
        self.reason = reason
        super().__init__(f"{filepath}: {reason}")


class DocumentMissing(DocumentError):
    """Document does not exist (yet)."""


class DocumentCorrupt(DocumentError):
    """Document exists but is unreadable, not JSON, or fails its schema."""


# Cache loaded schemas
_schema_cache: dict[str, dict] = {}


def _get_schemas_dir() -> Path:
    """Get path to schemas directory."""
    return Path(__file__).parent.parent / "schemas"


def _load_schema(schema_name: str) -> dict:
    """Load schema by name, with caching."""
    if schema_name not in _schema_cache:
        schema_path = _get_schemas_dir() / f"{schema_name}.schema.json"
        if not schema_path.exists():
            raise ValidationError(schema_name, f"Schema file not found: {schema_path}")
        _schema_cache[schema_name] = json.loads(schema_path.read_text())
    return _schema_cache[schema_name]


def validate(data: Any, schema_name: str) -> None:
    """
    Validate data against named schema.

    Args:
        data: Parsed JSON value to validate
        schema_name: Schema name ("index", "story", "status")

    Raises:
        ValidationError: If validation fails
    """
    schema = _load_schema(schema_name)

    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as e:
        path = ".".join(str(p) for p in e.absolute_path) if e.absolute_path else "(root)"
        raise ValidationError(schema_name, e.message, path) from None


def load_document(filepath: Path, schema_name: str) -> dict:
    """
    Load JSON file and validate against schema.

    Args:
        filepath: Path to JSON file
        schema_name: Schema name to validate against

    Returns:
        Parsed and validated data

    Raises:
        DocumentMissing: If the file does not exist
        DocumentCorrupt: If the file is unreadable, invalid JSON, or fails validation
    """
    try:
        text = filepath.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise DocumentMissing(filepath, "not found") from None
    except (OSError, UnicodeDecodeError) as e:
        raise DocumentCorrupt(filepath, f"unreadable: {e}") from None

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DocumentCorrupt(filepath, f"invalid JSON: {e}") from None

    try:
        validate(data, schema_name)
    except ValidationError as e:
        raise DocumentCorrupt(filepath, str(e)) from None

    return data
