import json
from pathlib import Path

import pytest
import yaml

from flatgltf.options import LoadOptions, SaveOptions, load_options_file


def test_yaml_options(tmp_path: Path):
    path = tmp_path / "opts.yaml"
    path.write_text(
        yaml.safe_dump({"load": {"skip_missing": True}, "save": {"indent": None}})
    )
    load_opts, save_opts = load_options_file(path)
    assert load_opts == LoadOptions(skip_missing=True)
    assert save_opts.indent is None
    assert save_opts.save_images is True


def test_json_options_partial_sections(tmp_path: Path):
    path = tmp_path / "opts.json"
    path.write_text(json.dumps({"save": {"save_images": False}}))
    load_opts, save_opts = load_options_file(path)
    assert load_opts == LoadOptions()
    assert save_opts == SaveOptions(save_images=False)


def test_empty_yaml_gives_defaults(tmp_path: Path):
    path = tmp_path / "empty.yml"
    path.write_text("")
    assert load_options_file(path) == (LoadOptions(), SaveOptions())


@pytest.mark.parametrize(
    "data",
    [
        {"load": {"bogus": 1}},
        {"other": {}},
        {"load": {"skip_missing": "yes"}},
        {"load": []},
    ],
)
def test_invalid_options_raise(tmp_path: Path, data):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps(data))
    with pytest.raises(ValueError):
        load_options_file(path)


def test_missing_options_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_options_file(tmp_path / "nope.yaml")
