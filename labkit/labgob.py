"""Value serialization for RPC and persistence, with sanity warnings.

Values are framed as a 4-byte big-endian length followed by a compact JSON
payload. Dataclass instances, enums, tuples, bytes and dictionaries with
arbitrary hashable keys survive a round trip. Dataclass fields whose names
start with an underscore are private and are never transmitted; the checker
warns about them, because a receiver silently gets their defaults instead.
"""

from __future__ import annotations

import base64
import dataclasses
import enum
import json
import struct
import threading
import typing
from typing import Any, BinaryIO

__all__ = [
    "LabEncoder",
    "LabDecoder",
    "register",
    "register_name",
    "check_value",
    "check_default",
    "error_count",
]

_HEADER = struct.Struct(">I")

_lock = threading.Lock()
_error_count = 0
_checked: set[Any] = set()
_names_by_type: dict[type, str] = {}
_types_by_name: dict[str, type] = {}


def error_count() -> int:
    """Return how many warnings the checks have raised so far."""
    with _lock:
        return _error_count


def _bump() -> int:
    """Increment the warning counter and return its previous value."""
    global _error_count
    with _lock:
        before = _error_count
        _error_count += 1
    return before


def _is_type_like(value: Any) -> bool:
    return isinstance(value, type) or typing.get_origin(value) is not None


# ---------------------------------------------------------------- registry

def _default_name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


def _registrable(value: Any) -> type:
    cls = value if isinstance(value, type) else type(value)
    if not (dataclasses.is_dataclass(cls) or issubclass(cls, enum.Enum)):
        raise TypeError(f"labgob: cannot register {cls.__qualname__}: not a dataclass or enum")
    return cls


def _register(name: str, cls: type) -> None:
    with _lock:
        known_type = _types_by_name.get(name)
        if known_type is not None and known_type is not cls:
            raise ValueError(f"labgob: registering duplicate types for {name!r}")
        known_name = _names_by_type.get(cls)
        if known_name is not None and known_name != name:
            raise ValueError(
                f"labgob: registering duplicate names for {cls.__qualname__}: "
                f"{known_name!r} != {name!r}"
            )
        _types_by_name[name] = cls
        _names_by_type[cls] = name


def register(value: Any) -> None:
    """Register a dataclass or enum (a class or an instance) under its default name."""
    check_value(value)
    cls = _registrable(value)
    _register(_default_name(cls), cls)


def register_name(name: str, value: Any) -> None:
    """Register a dataclass or enum under an explicit wire name."""
    check_value(value)
    _register(name, _registrable(value))


def _name_for(cls: type) -> str:
    with _lock:
        name = _names_by_type.get(cls)
        if name is not None:
            return name
        base = _default_name(cls)
        name = base
        suffix = 1
        while name in _types_by_name:
            suffix += 1
            name = f"{base}#{suffix}"
        _types_by_name[name] = cls
        _names_by_type[cls] = name
        return name


def _lookup(name: str) -> type:
    with _lock:
        cls = _types_by_name.get(name)
    if cls is None:
        raise ValueError(f"labgob: name not registered: {name!r}")
    return cls


# ------------------------------------------------------------------ checks

def check_value(value: Any) -> None:
    """Warn once per type about private dataclass fields reachable from ``value``."""
    if _is_type_like(value):
        _check_type(value)
        return
    _check_type(type(value))
    _check_contents(value)


def _check_contents(value: Any) -> None:
    if dataclasses.is_dataclass(value):
        for f in dataclasses.fields(value):
            check_value(getattr(value, f.name, None))
    elif isinstance(value, dict):
        for key, item in value.items():
            check_value(key)
            check_value(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            check_value(item)


def _check_type(cls: Any) -> None:
    with _lock:
        if cls in _checked:
            return
        _checked.add(cls)
    if isinstance(cls, type) and dataclasses.is_dataclass(cls):
        for f in dataclasses.fields(cls):
            if f.name.startswith("_"):
                print(
                    f"labgob error: private field {f.name} of {cls.__name__} "
                    "in RPC or persist/snapshot will break your Raft"
                )
                _bump()
            _check_hint(f.type)
    else:
        for arg in typing.get_args(cls):
            _check_hint(arg)


def _check_hint(hint: Any) -> None:
    if hint is None or isinstance(hint, str):
        return
    if _is_type_like(hint):
        _check_type(hint)
    else:
        for arg in typing.get_args(hint):
            _check_hint(arg)


def check_default(value: Any) -> None:
    """Warn if a decode target already holds non-default values."""
    if value is None or _is_type_like(value):
        return
    _check_default(value, 2, "")


def _check_default(value: Any, depth: int, name: str) -> None:
    if depth > 3:
        return
    if dataclasses.is_dataclass(value):
        for f in dataclasses.fields(value):
            sub = f"{name}.{f.name}" if name else f.name
            _check_default(getattr(value, f.name, None), depth + 1, sub)
        return
    scalar = value.value if isinstance(value, enum.Enum) else value
    if isinstance(scalar, (bool, int, float, str, bytes)) and scalar:
        if _bump() < 1:
            what = name or type(value).__name__
            print(f"labgob warning: Decoding into a non-default variable/field {what} may not work")


# --------------------------------------------------------------- wire form

def _to_wire(value: Any) -> Any:
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, enum.Enum):
        return {"__enum__": _name_for(type(value)), "value": _to_wire(value.value)}
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return {"__bytes__": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, list):
        return [_to_wire(item) for item in value]
    if isinstance(value, tuple):
        return {"__tuple__": [_to_wire(item) for item in value]}
    if isinstance(value, dict):
        return {"__map__": [[_to_wire(k), _to_wire(v)] for k, v in value.items()]}
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            "__type__": _name_for(type(value)),
            "fields": {
                f.name: _to_wire(getattr(value, f.name))
                for f in dataclasses.fields(value)
                if not f.name.startswith("_")
            },
        }
    raise TypeError(f"labgob: cannot encode value of type {type(value).__name__}")


def _from_wire(data: Any) -> Any:
    if isinstance(data, list):
        return [_from_wire(item) for item in data]
    if not isinstance(data, dict):
        return data
    if "__map__" in data:
        return {_from_wire(k): _from_wire(v) for k, v in data["__map__"]}
    if "__tuple__" in data:
        return tuple(_from_wire(item) for item in data["__tuple__"])
    if "__bytes__" in data:
        return base64.b64decode(data["__bytes__"])
    if "__enum__" in data:
        return _lookup(data["__enum__"])(_from_wire(data["value"]))
    if "__type__" in data:
        return _build(_lookup(data["__type__"]), data.get("fields", {}))
    raise ValueError("labgob: malformed data")


def _build(cls: type, fields_data: dict[str, Any]) -> Any:
    instance = cls.__new__(cls)
    for f in dataclasses.fields(cls):
        if f.name in fields_data:
            item = _from_wire(fields_data[f.name])
        elif f.default is not dataclasses.MISSING:
            item = f.default
        elif f.default_factory is not dataclasses.MISSING:
            item = f.default_factory()
        else:
            item = None
        object.__setattr__(instance, f.name, item)
    return instance


def _adopt(target: Any, value: Any) -> Any:
    if _is_type_like(target):
        expected = typing.get_origin(target) or target
        if expected is object or isinstance(value, expected):
            return value
        if expected is float and isinstance(value, int) and not isinstance(value, bool):
            return float(value)
        raise TypeError(f"labgob: cannot decode {type(value).__name__} into {expected.__name__}")
    if type(value) is not type(target):
        raise TypeError(
            f"labgob: cannot decode {type(value).__name__} into {type(target).__name__}"
        )
    if dataclasses.is_dataclass(target):
        for f in dataclasses.fields(target):
            object.__setattr__(target, f.name, getattr(value, f.name))
        return target
    if isinstance(target, list):
        target[:] = value
        return target
    if isinstance(target, dict):
        target.clear()
        target.update(value)
        return target
    return value


class LabEncoder:
    """Writes framed values to a binary stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def encode(self, value: Any) -> None:
        check_value(value)
        payload = json.dumps(
            _to_wire(value), separators=(",", ":"), ensure_ascii=False
        ).encode("utf-8")
        self._stream.write(_HEADER.pack(len(payload)) + payload)


class LabDecoder:
    """Reads framed values from a binary stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def _read_exact(self, size: int, at_start: bool) -> bytes:
        chunks = []
        remaining = size
        while remaining:
            chunk = self._stream.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        data = b"".join(chunks)
        if not data and at_start:
            raise EOFError("labgob: no more values")
        if len(data) < size:
            raise ValueError("labgob: truncated data")
        return data

    def decode(self, target: Any) -> Any:
        """Decode the next value.

        ``target`` is a type the value must have, or an existing value whose
        contents are replaced in place where it is mutable. Returns the value.
        """
        check_value(target)
        check_default(target)
        (size,) = _HEADER.unpack(self._read_exact(_HEADER.size, True))
        payload = self._read_exact(size, False)
        try:
            wire = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValueError(f"labgob: malformed data: {exc}") from exc
        return _adopt(target, _from_wire(wire))