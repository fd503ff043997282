"""
Host value introspection for the VEX evaluator.

The evaluator never inspects host values directly. It asks this module to
dereference a value, classify it, read a field, key or position, and
resolve a method by name. Every lookup returns `MISSING` rather than
raising when the name is not there, so the evaluator decides which error
kind to report.
"""
import collections.abc
import dataclasses
import inspect
import types
import weakref
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence, Tuple

from vex.vex_datatypes import Ref, NilReference, pointer_type_for

RECORD = 'record'
MAPPING = 'mapping'
SEQUENCE = 'sequence'
OTHER = 'other'


class _Missing:
    def __repr__(self):
        return "MISSING"

    def __bool__(self):
        return False


MISSING = _Missing()


def vex_api_method(func):
    """A decorator to explicitly mark VexHost methods as callable from VEX."""
    func._is_vex_api = True
    return func


class VexHost(ABC):
    """Base class for host objects that expose a controlled surface to VEX.

    Members and items are read through `__getitem__` (a KeyError means the
    key is absent). Only methods decorated with `@vex_api_method` can be
    called from an expression.
    """
    @abstractmethod
    def __getitem__(self, key): raise NotImplementedError


def _is_public(name: str) -> bool:
    return isinstance(name, str) and bool(name) and not name.startswith('_')


def _is_namedtuple(value) -> bool:
    return isinstance(value, tuple) and hasattr(type(value), '_fields')


def deref(value: Any) -> Tuple[Any, List[Ref]]:
    """Follows Ref and weak reference layers down to the concrete value.

    Returns the concrete value and the Refs that were peeled, outermost first.
    """
    wrappers: List[Ref] = []
    while True:
        if isinstance(value, Ref):
            wrappers.append(value)
            value = value.value
        elif isinstance(value, weakref.ReferenceType):
            value = value()
        else:
            break
    if value is None:
        raise NilReference("cannot reference value")
    return value, wrappers


def kind_of(value: Any) -> str:
    """Classifies a dereferenced value as record, mapping, sequence or other."""
    if isinstance(value, (VexHost, collections.abc.Mapping)):
        return MAPPING
    if isinstance(value, (str, bytes, bytearray)):
        return OTHER
    if _is_namedtuple(value):
        return RECORD
    if isinstance(value, collections.abc.Sequence):
        return SEQUENCE
    if isinstance(value, (type, types.ModuleType, int, float, complex)) or inspect.isroutine(value):
        return OTHER
    if dataclasses.is_dataclass(value):
        return RECORD
    if hasattr(value, '__dict__') or _slot_names(type(value)):
        return RECORD
    return OTHER


def _slot_names(klass: type) -> List[str]:
    names = []
    for k in klass.__mro__:
        slots = k.__dict__.get('__slots__', ())
        if isinstance(slots, str):
            slots = (slots,)
        names.extend(s for s in slots if s not in ('__dict__', '__weakref__'))
    return names


def field_names(value: Any) -> List[str]:
    """Public field names of a record."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return [f.name for f in dataclasses.fields(value) if _is_public(f.name)]
    if _is_namedtuple(value):
        return [f for f in type(value)._fields if _is_public(f)]

    names: List[str] = []
    for name in getattr(value, '__dict__', {}):
        if _is_public(name):
            names.append(name)
    for name in _slot_names(type(value)):
        if _is_public(name) and name not in names and hasattr(value, name):
            names.append(name)
    for klass in type(value).__mro__:
        for name, attr in vars(klass).items():
            if isinstance(attr, property) and _is_public(name) and name not in names:
                names.append(name)
    return names


def read_field(value: Any, name: str) -> Any:
    """Reads a public field of a record, or MISSING."""
    if not _is_public(name) or name not in field_names(value):
        return MISSING
    return getattr(value, name)


def read_key(value: Any, *candidates: Any) -> Any:
    """Looks up the first candidate key present in a mapping, or MISSING."""
    for key in candidates:
        if isinstance(value, VexHost):
            try:
                return value[key]
            except KeyError:
                continue
        try:
            if key in value:
                return value[key]
        except TypeError:
            # unhashable candidate
            continue
    return MISSING


def read_index(value: Sequence, index: Any) -> Any:
    """Bounds-checked positional access; only plain ints are valid positions."""
    if type(index) is not int:
        return MISSING
    if 0 <= index < len(value):
        return value[index]
    return MISSING


def _bound_method(obj: Any, name: str) -> Optional[Any]:
    if isinstance(obj, VexHost):
        member = getattr(obj, name, None)
        if callable(member) and getattr(member, '_is_vex_api', False):
            return member
        return None
    # Methods live on the type; a callable stored on the instance is data, not a method.
    attr = inspect.getattr_static(type(obj), name, MISSING)
    if attr is MISSING or not (callable(attr) or isinstance(attr, (classmethod, staticmethod))):
        return None
    member = getattr(obj, name, None)
    return member if callable(member) else None


def method_names(value: Any) -> List[str]:
    """Public method names callable on a value."""
    names = []
    for name in dir(type(value)):
        if _is_public(name) and _bound_method(value, name) is not None:
            names.append(name)
    return names


def find_method(value: Any, name: str, wrappers: Sequence[Ref] = ()) -> Optional[Any]:
    """Resolves a public method on a value, falling back to its pointer forms.

    The value's own type is tried first, then each peeled Ref (innermost
    first), then the Ref subclass registered as the pointer form of the
    value's type. Returns a bound callable or None.
    """
    if not _is_public(name):
        return None
    method = _bound_method(value, name)
    if method is not None:
        return method

    for ref in reversed(wrappers):
        if type(ref) is Ref:
            continue
        method = _bound_method(ref, name)
        if method is not None:
            return method

    ptr_type = pointer_type_for(type(value))
    if ptr_type is not None:
        return _bound_method(ptr_type(value), name)
    return None
