"""
Backup and Restore

A backup is the whole EntitySet as one JSON document. Restoring replaces
the in-memory value (and, through the cache, the store) wholesale.

IMPORTANT: parse_backup checks the SHAPE before anything is replaced.
A file that is not a backup (wrong JSON, a report export, half a document)
is rejected with every problem listed; nothing is partially restored.
Ids must be unique per collection, as the store keys every table on them.
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from estate_ledger.models.entities import AppConfig, EntitySet
from estate_ledger.services.storage.legacy import config_from_document
from estate_ledger.validation import ValidationError, ValidationIssue

# collection -> (field, accepted types) every record must carry
REQUIRED_KEYS = {
    "properties": (("id", int), ("name", str)),
    "tenants": (("id", int), ("property_id", int)),
    "employees": (("id", str), ("name", str)),
}


def export_backup(
    entities: EntitySet,
    exported_at: Optional[datetime] = None,
) -> dict[str, Any]:
    """JSON-serialisable backup of the full entity set."""
    document = entities.model_dump(mode="json")
    document["exported_at"] = (exported_at or datetime.now(timezone.utc)).isoformat()
    return document


def _issue(field: str, message: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type="invalid_backup",
        message=message,
        severity="error",
    )


def _shape_issues(document: Any) -> list[ValidationIssue]:
    if not isinstance(document, dict):
        return [_issue("backup", "Backup must be a JSON object")]

    issues = []
    for collection, required in REQUIRED_KEYS.items():
        records = document.get(collection)
        if not isinstance(records, list):
            issues.append(_issue(collection, f"'{collection}' must be an array"))
            continue
        for index, record in enumerate(records):
            if not isinstance(record, dict):
                issues.append(_issue(f"{collection}.{index}", "Record must be an object"))
                continue
            for key, expected in required:
                value = record.get(key)
                # bool is an int subclass; an id of true is still wrong
                if not isinstance(value, expected) or isinstance(value, bool):
                    issues.append(_issue(
                        f"{collection}.{index}.{key}",
                        f"'{key}' must be a {expected.__name__}",
                    ))

    config = document.get("config")
    if config is not None and not isinstance(config, dict):
        issues.append(_issue("config", "'config' must be an object"))
    return issues


def parse_backup(
    raw: Union[str, bytes, dict],
    defaults: Optional[AppConfig] = None,
) -> EntitySet:
    """
    Validate and parse a backup document.

    Args:
        raw: JSON text or an already-decoded dict
        defaults: Config values used where the backup's config is partial

    Raises:
        ValidationError: If the document is not a valid backup
    """
    document = raw
    if isinstance(raw, (str, bytes)):
        try:
            document = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValidationError("backup", [_issue("backup", f"Not valid JSON: {e}")]) from e

    issues = _shape_issues(document)
    if issues:
        raise ValidationError("backup", issues)

    try:
        entities = EntitySet(
            properties=document["properties"],
            tenants=document["tenants"],
            employees=document["employees"],
            config=config_from_document(document.get("config"), defaults or AppConfig()),
        )
    except PydanticValidationError as e:
        raise ValidationError("backup", [
            _issue(".".join(str(part) for part in error["loc"]), error["msg"])
            for error in e.errors()
        ]) from e

    duplicates = entities.duplicate_ids()
    if duplicates:
        raise ValidationError("backup", [
            _issue(f"{collection}.id", f"Duplicate id {record_id}")
            for collection, record_id in duplicates
        ])
    return entities
