"""
dpgm/factor/io.py

JSON round-trip for factors and factor collections.

Factor format:
{
    "kind": "table" | "log_table",
    "variables": {"A": 2, "B": 3},
    "scope": ["A", "B"],
    "values": [[0.1, 0.2, 0.3], [0.4, 0.5, 0.6]]
}

``values`` is nested with one level per scope variable (first variable
outermost) and holds the stored values, so log-domain factors are written
as logs. Collections use {"variables": {...}, "factors": {name: factor}}.

Variables are resolved by name in the given universe and created there if
missing; an existing variable with a different arity is an error.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Mapping

import numpy as np

from dpgm.core.exceptions import InvalidArgument
from dpgm.core.registry import Universe, Variable
from dpgm.factor.log_table import LogTableFactor
from dpgm.factor.table_factor import TableFactor

_KINDS = {"table": TableFactor, "log_table": LogTableFactor}


def _kind(f: TableFactor) -> str:
    return "log_table" if isinstance(f, LogTableFactor) else "table"


def _resolve(universe: Universe, name: str, arity: int) -> Variable:
    if name in universe:
        var = universe.variable(name)
        if var.arity != int(arity):
            raise InvalidArgument(f"variable {name!r} has arity {var.arity}, serialized arity is {arity}",
                                  operation="factor_from_dict", variables=(var,))
        return var
    return universe.new_variable(int(arity), name)


def factor_to_dict(f: TableFactor) -> Dict[str, Any]:
    return {
        "kind": _kind(f),
        "variables": {v.name: v.arity for v in f.arg_seq},
        "scope": [v.name for v in f.arg_seq],
        "values": f.data.tolist(),
    }


def factor_from_dict(data: Mapping[str, Any], universe: Universe) -> TableFactor:
    try:
        cls = _KINDS[data.get("kind", "table")]
    except KeyError:
        raise InvalidArgument(f"unknown factor kind {data.get('kind')!r}", operation="factor_from_dict") from None
    arities = data.get("variables", {})
    scope = []
    for name in data["scope"]:
        if name not in arities and name not in universe:
            raise InvalidArgument(f"arity of variable {name!r} is unknown", operation="factor_from_dict")
        arity = arities[name] if name in arities else universe.variable(name).arity
        scope.append(_resolve(universe, name, arity))
    return cls.from_array(scope, np.array(data["values"], dtype=np.float64))


def dumps(f: TableFactor, **kwargs) -> str:
    return json.dumps(factor_to_dict(f), **kwargs)


def loads(s: str, universe: Universe) -> TableFactor:
    return factor_from_dict(json.loads(s), universe)


def save_factors(filepath: str, factors: Mapping[str, TableFactor]) -> None:
    """Write named factors and the variables they use to a JSON file."""
    variables: Dict[str, int] = {}
    for f in factors.values():
        for v in f.arg_seq:
            variables[v.name] = v.arity
    output = {
        "variables": variables,
        "factors": {name: factor_to_dict(f) for name, f in factors.items()},
    }
    with open(filepath, "w") as fh:
        json.dump(output, fh, indent=2)


def load_factors(filepath: str, universe: Universe) -> Dict[str, TableFactor]:
    """Read a file written by save_factors (or hand-written in the same format)."""
    with open(filepath, "r") as fh:
        data = json.load(fh)
    for name, arity in data.get("variables", {}).items():
        _resolve(universe, name, arity)
    return {name: factor_from_dict(fdata, universe) for name, fdata in data["factors"].items()}
