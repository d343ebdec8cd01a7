import re

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
MAX_IDENTIFIER_LENGTH = 63


def is_identifier(value: str) -> bool:
    return bool(value) and len(value) <= MAX_IDENTIFIER_LENGTH and bool(_IDENTIFIER.match(value))


def split_table_name(name: str) -> tuple[str | None, str]:
    """
    Split ``schema.table`` into its parts, validating each one.
    Raises ValueError for anything that is not a plain identifier.
    """
    parts = (name or "").strip().split(".")
    if len(parts) > 2 or not all(is_identifier(part) for part in parts):
        raise ValueError(f"Invalid table name: {name!r}")
    if len(parts) == 2:
        return parts[0], parts[1]
    return None, parts[0]
