import json
import logging
from pathlib import Path
from typing import Any, Dict

import jsonschema
from jsonschema.exceptions import ValidationError

logger = logging.getLogger(__name__)


class ContractError(Exception):
    """Raised when a payload violates its data contract."""

    pass


def load_schema(schema_name: str) -> Dict[str, Any]:
    """Load a JSON schema shipped with the package."""
    schema_path = Path(__file__).parent.parent / "schemas" / f"{schema_name}.json"
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema not found: {schema_name}")

    with open(schema_path, "r", encoding="utf-8") as f:
        return dict(json.load(f))


def validate_output(data: Any, schema_name: str, mode: str = "FILING") -> None:
    """
    Validate data against a JSON schema.

    Args:
        data: The payload to validate.
        schema_name: Name of the schema file (without .json extension).
        mode: 'FILING' (raises error) or 'REVIEW' (logs warning).

    Raises:
        ContractError: If validation fails and mode is FILING.
    """
    try:
        schema = load_schema(schema_name)
        jsonschema.validate(instance=data, schema=schema)
    except (ValidationError, FileNotFoundError) as e:
        msg = f"Data Contract Violation ({schema_name}): {e.message if isinstance(e, ValidationError) else e}"
        if mode == "FILING":
            raise ContractError(msg) from e
        logger.warning(msg)


def load_validated_json(path: Path, schema_name: str) -> Any:
    """Read a JSON file and enforce its contract (FILING mode)."""
    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    validate_output(payload, schema_name, mode="FILING")
    return payload
