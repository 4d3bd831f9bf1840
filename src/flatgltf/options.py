"""Load/save options and their config file loader (JSON/YAML)."""

from __future__ import annotations

import json
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml

__all__ = ["LoadOptions", "SaveOptions", "load_options_file"]


@dataclass(slots=True)
class LoadOptions:
    load_buffers: bool = True
    load_images: bool = True
    skip_missing: bool = False
    # run the structural validator before resolving resources
    validate: bool = True


@dataclass(slots=True)
class SaveOptions:
    save_buffers: bool = True
    save_images: bool = True
    # JSON indentation for .gltf output; None writes compact JSON
    indent: int | None = 2


def _apply(cls, section: Any, name: str):
    if section is None:
        return cls()
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' section must be an object")
    known = {f.name: f for f in fields(cls)}
    unknown = sorted(set(section) - set(known))
    if unknown:
        raise ValueError(f"Unknown {name} option(s): {', '.join(unknown)}")
    for key, value in section.items():
        default = known[key].default
        if isinstance(default, bool) and not isinstance(value, bool):
            raise ValueError(f"{name}.{key} must be a boolean")
    return replace(cls(), **section)


def load_options_file(path: str | Path) -> Tuple[LoadOptions, SaveOptions]:
    """Read ``load:`` / ``save:`` sections from a JSON or YAML file."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in {".yaml", ".yml"}:
        data: Any = yaml.safe_load(text)
    else:
        data = json.loads(text)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Root of options file must be an object")
    extra = sorted(set(data) - {"load", "save"})
    if extra:
        raise ValueError(f"Unknown options section(s): {', '.join(extra)}")
    return (
        _apply(LoadOptions, data.get("load"), "load"),
        _apply(SaveOptions, data.get("save"), "save"),
    )


def options_to_dict(load: LoadOptions, save: SaveOptions) -> Dict[str, Any]:
    return {
        "load": {f.name: getattr(load, f.name) for f in fields(load)},
        "save": {f.name: getattr(save, f.name) for f in fields(save)},
    }
