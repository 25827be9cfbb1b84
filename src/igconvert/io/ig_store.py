"""
igconvert.io.ig_store

In-memory associative object store in the iSpy "ig" model.

A store holds
  - collections: named, typed tables. Each collection declares an ordered
    list of properties; the default value given at declaration fixes the
    property's type for every item of that collection.
  - items: rows of a collection, identified by (collection, index). Items
    are created with every property at its default.
  - associations: named, ordered lists of item pairs. Insertion order is
    kept, so a track's hits read back in the order they were linked.

Property values form a closed set of types (int, double, string, v3d).
Assignments are checked against the declared type and raise TypeMismatch.

Usage:
    store = IgStore()
    tracks = store.collection("ATLASTracks_V2")
    PT = tracks.add_property("pt", 0.0)
    t = tracks.create()
    t[PT] = 12.5
    store.associations("ATLASTrackHits_V1").associate(t, h)
    store.freeze()
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import math
from numbers import Integral, Real
from typing import Any, Dict, Iterator, List, Tuple

from igconvert.errors import StoreError, TypeMismatch

# ints are stored as int64; doubles must be finite to stay valid JSON
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


class PropertyType(Enum):
    INT = "int"
    DOUBLE = "double"
    STRING = "string"
    V3D = "v3d"

    @classmethod
    def of(cls, default: Any) -> "PropertyType":
        """Infer the property type from a declaration default."""
        if isinstance(default, bool):
            raise TypeError("bool is not a property type; use int 0/1")
        if isinstance(default, Integral):
            return cls.INT
        if isinstance(default, Real):
            return cls.DOUBLE
        if isinstance(default, str):
            return cls.STRING
        if _is_v3(default):
            return cls.V3D
        raise TypeError(f"Unsupported property default {default!r}")

    def accepts(self, value: Any) -> bool:
        if self is PropertyType.INT:
            return (
                isinstance(value, Integral)
                and not isinstance(value, bool)
                and INT64_MIN <= int(value) <= INT64_MAX
            )
        if self is PropertyType.DOUBLE:
            return _is_finite_real(value)
        if self is PropertyType.STRING:
            return isinstance(value, str)
        return _is_v3(value)

    def normalize(self, value: Any):
        if self is PropertyType.INT:
            return int(value)
        if self is PropertyType.DOUBLE:
            return float(value)
        if self is PropertyType.STRING:
            return str(value)
        return tuple(float(c) for c in value)


def _is_v3(value: Any) -> bool:
    if isinstance(value, (str, bytes)):
        return False
    try:
        comps = list(value)
    except TypeError:
        return False
    return len(comps) == 3 and all(_is_finite_real(c) for c in comps)


def _is_finite_real(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


@dataclass(frozen=True)
class IgProperty:
    collection: "IgCollection"
    name: str
    type: PropertyType
    default: Any
    slot: int


class IgItem:
    """Handle to one row of a collection."""

    __slots__ = ("collection", "index")

    def __init__(self, collection: "IgCollection", index: int):
        self.collection = collection
        self.index = index

    def set(self, prop: IgProperty, value: Any) -> None:
        self.collection._set(self.index, prop, value)

    def get(self, prop: IgProperty) -> Any:
        return self.collection._get(self.index, prop)

    __setitem__ = set
    __getitem__ = get

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, IgItem)
            and other.collection is self.collection
            and other.index == self.index
        )

    def __hash__(self) -> int:
        return hash((id(self.collection), self.index))

    def __repr__(self) -> str:
        return f"IgItem({self.collection.name!r}, {self.index})"


class IgCollection:
    def __init__(self, store: "IgStore", name: str, cid: int):
        self.store = store
        self.name = name
        self.cid = cid
        self.properties: List[IgProperty] = []
        self._by_name: Dict[str, IgProperty] = {}
        self._rows: List[List[Any]] = []

    def add_property(self, name: str, default: Any) -> IgProperty:
        self.store._check_open()
        if name in self._by_name:
            raise StoreError(f"Property {name!r} already declared on {self.name}")
        if self._rows:
            raise StoreError(f"Cannot add {name!r} to {self.name}: items already exist")
        ptype = PropertyType.of(default)
        prop = IgProperty(self, name, ptype, ptype.normalize(default), len(self.properties))
        self.properties.append(prop)
        self._by_name[name] = prop
        return prop

    def property(self, name: str) -> IgProperty:
        return self._by_name[name]

    def create(self) -> IgItem:
        self.store._check_open()
        self._rows.append([p.default for p in self.properties])
        return IgItem(self, len(self._rows) - 1)

    def rows(self) -> Iterator[Tuple[Any, ...]]:
        for r in self._rows:
            yield tuple(r)

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[IgItem]:
        for i in range(len(self._rows)):
            yield IgItem(self, i)

    def _check_prop(self, prop: IgProperty) -> None:
        if prop.collection is not self:
            raise StoreError(
                f"Property {prop.collection.name}.{prop.name} used on collection {self.name}"
            )

    def _set(self, index: int, prop: IgProperty, value: Any) -> None:
        self.store._check_open()
        self._check_prop(prop)
        if not prop.type.accepts(value):
            raise TypeMismatch(self.name, prop.name, prop.type.value, value)
        self._rows[index][prop.slot] = prop.type.normalize(value)

    def _get(self, index: int, prop: IgProperty) -> Any:
        self._check_prop(prop)
        return self._rows[index][prop.slot]


class IgAssociations:
    def __init__(self, store: "IgStore", name: str):
        self.store = store
        self.name = name
        self._pairs: List[Tuple[IgItem, IgItem]] = []

    def associate(self, a: IgItem, b: IgItem) -> None:
        self.store._check_open()
        for it in (a, b):
            if it.collection.store is not self.store:
                raise StoreError(f"{it!r} belongs to a different store than {self.name}")
        self._pairs.append((a, b))

    def targets_of(self, item: IgItem) -> List[IgItem]:
        """Items linked from `item`, in insertion order."""
        return [b for a, b in self._pairs if a == item]

    def __iter__(self) -> Iterator[Tuple[IgItem, IgItem]]:
        return iter(self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)


class IgStore:
    """Collections + associations for one conversion run."""

    def __init__(self):
        self._collections: Dict[str, IgCollection] = {}
        self._associations: Dict[str, IgAssociations] = {}
        self.frozen = False

    def collection(self, name: str) -> IgCollection:
        coll = self._collections.get(name)
        if coll is None:
            self._check_open()
            coll = IgCollection(self, name, len(self._collections))
            self._collections[name] = coll
        return coll

    def associations(self, name: str) -> IgAssociations:
        assoc = self._associations.get(name)
        if assoc is None:
            self._check_open()
            assoc = IgAssociations(self, name)
            self._associations[name] = assoc
        return assoc

    @property
    def collections(self) -> List[IgCollection]:
        return list(self._collections.values())

    @property
    def association_sets(self) -> List[IgAssociations]:
        return list(self._associations.values())

    def freeze(self) -> "IgStore":
        self.frozen = True
        return self

    def _check_open(self) -> None:
        if self.frozen:
            raise StoreError("Store is frozen; no further changes allowed")
