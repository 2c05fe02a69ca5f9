# Overview: Lookup helpers over the static permission catalogue.

from .definitions import PERMISSION_DEFINITIONS

_BY_CODE = {code: (code, name, description, category) for code, name, description, category in PERMISSION_DEFINITIONS}


def _as_dict(definition) -> dict:
    code, name, description, category = definition
    return {"code": code, "name": name, "description": description, "category": category}


def get_all_permission_codes() -> list[str]:
    return list(_BY_CODE)


def get_permissions_by_category(category: str) -> list[dict]:
    return [_as_dict(d) for d in PERMISSION_DEFINITIONS if d[3] == category]


def get_permission_categories() -> list[str]:
    """Categories in catalogue order, without duplicates."""
    seen: list[str] = []
    for definition in PERMISSION_DEFINITIONS:
        if definition[3] not in seen:
            seen.append(definition[3])
    return seen


def get_permission_definition(code: str) -> dict | None:
    definition = _BY_CODE.get(code)
    return _as_dict(definition) if definition else None


def validate_permission_code(code: str) -> bool:
    return code in _BY_CODE
