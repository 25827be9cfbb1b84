# src/igconvert/io/ig_writer.py
"""
Text rendering of a finished IgStore.

Layout (JSON, collections and association sets in declaration order):

    {"Types": {"Event_V3": [["run", "int"], ...], ...},
     "Collections": {"Event_V3": [[1234, 5678, ...]], ...},
     "Associations": {"ATLASTrackHits_V1": [[[1, 0], [2, 0]], ...]}}

An item is referenced as [collection id, item index]; the collection id is
the collection's position in "Types". v3d values are 3-element lists.
"""
from __future__ import annotations

import json
import zipfile
from pathlib import Path
from typing import Any, Dict, Optional

from igconvert.io.ig_store import IgItem, IgStore, PropertyType

_TYPE_DEFAULTS = {
    PropertyType.INT: 0,
    PropertyType.DOUBLE: 0.0,
    PropertyType.STRING: "",
    PropertyType.V3D: (0.0, 0.0, 0.0),
}


def _value(v: Any) -> Any:
    return list(v) if isinstance(v, tuple) else v


def store_to_dict(store: IgStore) -> Dict[str, Any]:
    types: Dict[str, Any] = {}
    collections: Dict[str, Any] = {}
    for coll in store.collections:
        types[coll.name] = [[p.name, p.type.value] for p in coll.properties]
        collections[coll.name] = [[_value(v) for v in row] for row in coll.rows()]
    associations: Dict[str, Any] = {}
    for assoc in store.association_sets:
        associations[assoc.name] = [
            [[a.collection.cid, a.index], [b.collection.cid, b.index]] for a, b in assoc
        ]
    return {"Types": types, "Collections": collections, "Associations": associations}


def dumps_ig(store: IgStore) -> str:
    return json.dumps(
        store_to_dict(store), allow_nan=False, separators=(", ", ": "), ensure_ascii=False
    )


def loads_ig(text: str) -> IgStore:
    """Rebuild a (frozen) store from dumps_ig output."""
    doc = json.loads(text)
    store = IgStore()
    colls = []
    for name, props in doc["Types"].items():
        coll = store.collection(name)
        handles = [coll.add_property(p, _TYPE_DEFAULTS[PropertyType(t)]) for p, t in props]
        for row in doc["Collections"].get(name, []):
            item = coll.create()
            for prop, v in zip(handles, row):
                item[prop] = v
        colls.append(coll)
    for name, pairs in doc["Associations"].items():
        assoc = store.associations(name)
        for (ca, ia), (cb, ib) in pairs:
            assoc.associate(_item(colls, ca, ia), _item(colls, cb, ib))
    return store.freeze()


def _item(colls, cid: int, index: int):
    coll = colls[cid]
    if not 0 <= index < len(coll):
        raise ValueError(f"Association refers to missing item {index} of {coll.name}")
    return IgItem(coll, index)


def event_member_name(run: int, event: int) -> str:
    return f"Events/Run_{run}/Event_{event}"


def write_ig(
    store: IgStore,
    path: str | Path,
    *,
    run: Optional[int] = None,
    event: Optional[int] = None,
) -> Path:
    """
    Serialize `store` to `path`.

    A ".ig" suffix writes a zip archive holding the text under
    Events/Run_<run>/Event_<event>; any other suffix writes the text as-is.
    """
    text = dumps_ig(store)
    out = Path(path)
    if out.suffix.lower() == ".ig":
        member = event_member_name(run or 0, event or 0)
        with zipfile.ZipFile(out, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.writestr(member, text + "\n")
    else:
        out.write_text(text + "\n", encoding="utf-8")
    return out
