import json
from pathlib import Path

import yaml

from conftest import triangle_asset
from flatgltf.api import load, save
from flatgltf.cli import main


def _write_triangle(tmp_path: Path) -> Path:
    asset = triangle_asset()
    asset.buffers[0].uri = "tri.bin"
    path = tmp_path / "tri.gltf"
    save(path, asset)
    return path


def test_info_json(tmp_path: Path, capsys):
    path = _write_triangle(tmp_path)
    assert main(["-r", "silent", "info", str(path), "--json"]) == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["kind"] == "asset"
    assert summary["meshes"] == 1 and summary["primitives"] == 1


def test_flatten_yaml(tmp_path: Path, capsys):
    path = _write_triangle(tmp_path)
    assert main(["-r", "silent", "flatten", str(path), "--format", "yaml"]) == 0
    data = yaml.safe_load(capsys.readouterr().out)
    assert data["primitives"][0]["triangles"] == 1
    assert data["meshes"][0]["primitives"] == [0]


def test_convert_to_glb(tmp_path: Path):
    path = _write_triangle(tmp_path)
    out = tmp_path / "out" / "tri.glb"
    assert main(["-r", "silent", "convert", str(path), str(out)]) == 0
    assert out.read_bytes()[:4] == b"glTF"
    assert len(load(out).meshes) == 1


def test_convert_with_config(tmp_path: Path):
    path = _write_triangle(tmp_path)
    (tmp_path / "tri.bin").unlink()
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text(yaml.safe_dump({"load": {"skip_missing": True}, "save": {"save_buffers": False}}))
    out = tmp_path / "copy.gltf"
    assert main(["-r", "silent", "convert", str(path), str(out), "--config", str(cfg)]) == 0
    assert out.exists()


def test_roundtrip(tmp_path: Path):
    path = _write_triangle(tmp_path)
    out = tmp_path / "rt" / "scene.gltf"
    assert main(["-r", "silent", "roundtrip", str(path), str(out)]) == 0
    assert (tmp_path / "rt" / "scene.bin").exists()
    assert len(load(out).nodes) == 1


def test_missing_file_reports_error(tmp_path: Path, capsys):
    code = main(["-r", "plain", "info", str(tmp_path / "nope.gltf")])
    assert code == 1
    assert "nope.gltf" in capsys.readouterr().err
