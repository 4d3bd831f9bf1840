"""Command line interface for flatgltf."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

import yaml

from .api import (
    flat_to_dict,
    flatten,
    load,
    load_with_options,
    report_summary,
    save,
    save_with_options,
    summarize,
    unflatten,
)
from .errors import GltfError
from .logging import configure_logging, get_logger, step
from .options import LoadOptions, SaveOptions, load_options_file, options_to_dict
from .reporting import (
    PlainReporter,
    RichReporter,
    SilentReporter,
    get_reporter,
    set_reporter,
    set_verbosity,
)


def _emit(data: object, fmt: str = "json") -> None:
    rep = get_reporter()
    rep.flush()
    if fmt == "yaml":
        print(yaml.safe_dump(data, sort_keys=False), end="")
    else:
        print(json.dumps(data, indent=2))


def _info_cmd(args: argparse.Namespace) -> int:
    asset = load(args.path, load_images=False, skip_missing=True)
    if args.json:
        _emit(summarize(asset))
    else:
        report_summary(asset)
    return 0


def _convert_cmd(args: argparse.Namespace) -> int:
    load_opts, save_opts = LoadOptions(), SaveOptions()
    if args.config is not None:
        load_opts, save_opts = load_options_file(args.config)
    if args.skip_missing:
        load_opts.skip_missing = True
    get_logger("cli").debug("options: %s", options_to_dict(load_opts, save_opts))
    asset = load_with_options(args.src, load_opts)
    step(f"writing {args.dst}")
    save_with_options(args.dst, asset, save_opts)
    return 0


def _flatten_cmd(args: argparse.Namespace) -> int:
    asset = load(args.path, skip_missing=args.skip_missing)
    model = flatten(asset, args.scene)
    report_summary(model)
    _emit(flat_to_dict(model), args.format)
    return 0


def _roundtrip_cmd(args: argparse.Namespace) -> int:
    asset = load(args.src, skip_missing=args.skip_missing)
    model = flatten(asset, args.scene)
    rebuilt = unflatten(model, Path(args.dst).stem)
    save(args.dst, rebuilt)
    report_summary(rebuilt)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="flatgltf", description="glTF 2.0 loader, writer and scene flattener"
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (repeatable)",
    )
    p.add_argument(
        "-r",
        "--reporter",
        choices=["plain", "rich", "silent"],
        default="plain",
        help="Select reporter backend: plain (default), rich, silent",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    i = sub.add_parser("info", help="Summarize a .gltf/.glb file")
    i.add_argument("path", type=Path)
    i.add_argument("--json", action="store_true", help="Emit JSON summary")
    i.set_defaults(func=_info_cmd)

    c = sub.add_parser("convert", help="Convert between .gltf and .glb")
    c.add_argument("src", type=Path)
    c.add_argument("dst", type=Path)
    c.add_argument(
        "--skip-missing",
        action="store_true",
        help="Warn instead of failing on missing external files",
    )
    c.add_argument(
        "--config", type=Path, help="JSON/YAML file with load/save options"
    )
    c.set_defaults(func=_convert_cmd)

    f = sub.add_parser("flatten", help="Flatten a scene and describe the result")
    f.add_argument("path", type=Path)
    f.add_argument("--scene", type=int, default=-1, help="Scene index (default scene)")
    f.add_argument("--format", choices=["json", "yaml"], default="json")
    f.add_argument("--skip-missing", action="store_true")
    f.set_defaults(func=_flatten_cmd)

    r = sub.add_parser("roundtrip", help="Load, flatten, unflatten and save")
    r.add_argument("src", type=Path)
    r.add_argument("dst", type=Path)
    r.add_argument("--scene", type=int, default=-1)
    r.add_argument("--skip-missing", action="store_true")
    r.set_defaults(func=_roundtrip_cmd)

    return p


def main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    requested = args.reporter
    if requested == "silent":
        set_reporter(SilentReporter())
    elif requested == "rich" and sys.stderr.isatty():
        set_reporter(RichReporter())
    else:
        # rich falls back to plain without a TTY
        set_reporter(PlainReporter())
    set_verbosity(args.verbose)
    configure_logging(args.verbose)
    try:
        return args.func(args)
    except (GltfError, ValueError, OSError) as exc:
        get_reporter().error(str(exc))
        return 1
    finally:
        get_reporter().flush()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
