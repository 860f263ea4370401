from typing import Any, Dict


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``override`` into ``base`` in place and return ``base``.

    Nested dicts are merged key by key, any other value replaces the one
    in ``base``.
    """
    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            base[key] = deep_merge(current, value)
        else:
            base[key] = value
    return base
