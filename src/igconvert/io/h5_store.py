from __future__ import annotations
from typing import Dict
import h5py
import numpy as np
from datetime import datetime, timezone
from pathlib import Path
from igconvert.io.ig_store import IgAssociations, IgCollection, IgStore, PropertyType

FORMAT_VERSION = "1.0"

_DTYPES = {
    PropertyType.INT: np.int64,
    PropertyType.DOUBLE: np.float64,
}


def _replace_or_create(grp: h5py.Group, name: str, data: np.ndarray, **kw) -> None:
    if name in grp:
        del grp[name]
    grp.create_dataset(name, data=data, **kw)


def _collection_arrays(coll: IgCollection) -> Dict[str, np.ndarray]:
    """
    One array per property, one row per item.

    int/double -> (N,) ; v3d -> (N, 3) float64 ; string -> (N,) utf-8
    """
    rows = list(coll.rows())
    arrays: Dict[str, np.ndarray] = {}
    for p in coll.properties:
        col = [r[p.slot] for r in rows]
        if p.type is PropertyType.V3D:
            data = np.asarray(col, dtype=np.float64).reshape(len(col), 3)
        elif p.type is PropertyType.STRING:
            data = np.array(col, dtype=h5py.string_dtype())
        else:
            data = np.asarray(col, dtype=_DTYPES[p.type])
        arrays[p.name] = data
    return arrays


def _association_array(assoc: IgAssociations) -> np.ndarray:
    if not len(assoc):
        return np.zeros((0, 2, 2), dtype=np.int64)
    return np.array(
        [[[a.collection.cid, a.index], [b.collection.cid, b.index]] for a, b in assoc],
        dtype=np.int64,
    )


def write_h5(store: IgStore, path: str | Path, *, attrs: Dict[str, object] | None = None) -> Path:
    """
    Store collections and associations as HDF5.

    Layout:

    /collections/<name>/<property>   (N,) or (N, 3)
    /associations/<name>             (M, 2, 2) int64   [pair, side, (collection_id, index)]

    Every array is built before the file is opened, so a bad value leaves no file behind.
    """
    collections = [(coll, _collection_arrays(coll)) for coll in store.collections]
    associations = [(a.name, _association_array(a)) for a in store.association_sets]

    out = Path(path)
    with h5py.File(out, "w") as f:
        # Root attrs
        f.attrs["format_version"] = FORMAT_VERSION
        f.attrs["created_utc"] = datetime.now(timezone.utc).isoformat()
        f.attrs["software"] = "ig-convert 0.1.0"
        for k, v in (attrs or {}).items():
            f.attrs[k] = v

        colls = f.require_group("collections")
        for coll, arrays in collections:
            g = colls.require_group(coll.name)
            g.attrs["collection_id"] = coll.cid
            g.attrs["properties"] = np.array([p.name for p in coll.properties], dtype=h5py.string_dtype())
            g.attrs["types"] = np.array([p.type.value for p in coll.properties], dtype=h5py.string_dtype())
            for name, data in arrays.items():
                _replace_or_create(g, name, data)

        assocs = f.require_group("associations")
        for name, pairs in associations:
            if len(pairs):
                _replace_or_create(assocs, name, pairs, compression="gzip")
            else:
                _replace_or_create(assocs, name, pairs)
    return out


def read_association(path: str | Path, name: str) -> np.ndarray:
    with h5py.File(str(path), "r") as f:
        grp = f["associations"]
        if name not in grp:
            raise KeyError(f"{name} not found in /associations of {path}")
        arr = np.array(grp[name], dtype=np.int64)
    return arr
