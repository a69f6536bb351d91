# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
from dataclasses import fields, is_dataclass

BaseType = int | float | str | bool
FlattenedOrBaseType = dict[str, BaseType] | BaseType
Flattened = dict[str, BaseType]


def _join(key: str, part: str) -> str:
    return f"{key}.{part}" if key else part


def _merge(results: Flattened, key: str, value: object) -> None:
    flat_result = asdict_recursive(value, key)
    if isinstance(flat_result, dict):
        results.update(flat_result)
    else:
        results[key] = flat_result


def asdict_recursive(obj: object, key: str = "") -> FlattenedOrBaseType:
    """Flatten `obj` into a dict of `.` separated keys. `None` values are dropped.

    >>> asdict_recursive({"fs": {"device": "/dev/sda1", "labels": ["root"]}})
    {'fs.device': '/dev/sda1', 'fs.labels.0': 'root'}
    """
    results: Flattened = {}
    if is_dataclass(obj) and not isinstance(obj, type):
        for field in fields(obj):
            value = getattr(obj, field.name)
            if value is not None:
                _merge(results, _join(key, field.name), value)
    elif isinstance(obj, dict):
        for k, value in obj.items():
            if value is not None:
                _merge(results, _join(key, str(k)), value)
    elif isinstance(obj, (list, tuple)):
        for i, value in enumerate(obj):
            if value is not None:
                _merge(results, _join(key, str(i)), value)
    elif isinstance(obj, (str, int, float, bool)):
        return obj
    else:
        raise TypeError(f"{type(obj)} is not supported for asdict_recursive.")
    return results


def flatten_dict_factory(pairs: list[tuple[str, object]]) -> Flattened:
    """dict_factory for `dataclasses.asdict` which flattens nested values into `.`
    separated keys, e.g. {"fs": {"capacity": 1}} becomes {"fs.capacity": 1}.
    """
    results: Flattened = {}
    for key, value in pairs:
        if value is not None:
            _merge(results, key, value)
    return results


def remove_none_dict_factory(pairs: list[tuple[str, object]]) -> dict[str, object]:
    return {key: value for key, value in pairs if value is not None}
