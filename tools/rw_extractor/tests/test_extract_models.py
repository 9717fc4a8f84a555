"""Tests for the extraction CLI."""
import os
import subprocess
import sys
import tempfile

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from rw_extractor.extract_models import main

from rw_builders import img_archive, simple_clump, tex_dictionary, tex_native

TOOLS_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def write(path, data):
    with open(path, "wb") as f:
        f.write(data)
    return path


def test_cli_help():
    """CLI should show help."""
    result = subprocess.run(
        [sys.executable, "-m", "rw_extractor.extract_models", "--help"],
        capture_output=True,
        text=True,
        cwd=TOOLS_DIR,
    )
    assert result.returncode == 0
    assert "usage" in result.stdout.lower()


def test_cli_extract_model_with_dictionary():
    """CLI should convert a textured model when its dictionary is given."""
    from pygltflib import GLTF2

    with tempfile.TemporaryDirectory() as tmpdir:
        dff = write(os.path.join(tmpdir, "car.dff"), simple_clump("wall01"))
        txd = write(os.path.join(tmpdir, "car.txd"), tex_dictionary([tex_native("wall01")]))
        output_dir = os.path.join(tmpdir, "output")

        assert main([dff, "--txd", txd, "-o", output_dir]) == 0

        output_file = os.path.join(output_dir, "car.glb")
        assert os.path.exists(output_file)
        gltf = GLTF2.load(output_file)
        assert len(gltf.meshes) == 1
        assert gltf.materials[0].name == "wall01"


def test_cli_missing_dictionary_fails(capsys):
    with tempfile.TemporaryDirectory() as tmpdir:
        dff = write(os.path.join(tmpdir, "car.dff"), simple_clump("wall01"))

        assert main([dff, "-o", os.path.join(tmpdir, "output")]) == 1

    err = capsys.readouterr().err
    assert "Failed" in err
    assert "wall01" in err


def test_cli_directory_mixed_inputs():
    with tempfile.TemporaryDirectory() as tmpdir:
        src = os.path.join(tmpdir, "src")
        os.makedirs(src)
        write(os.path.join(src, "plain.dff"), simple_clump())
        write(os.path.join(src, "generic.txd"), tex_dictionary([tex_native("grass"), tex_native("rock")]))
        write(os.path.join(src, "notes.txt"), b"ignored")
        output_dir = os.path.join(tmpdir, "output")

        assert main([src, "-o", output_dir]) == 0

        assert os.path.exists(os.path.join(output_dir, "plain.glb"))
        assert sorted(os.listdir(os.path.join(output_dir, "generic"))) == ["grass.png", "rock.png"]


def test_cli_dds_format():
    with tempfile.TemporaryDirectory() as tmpdir:
        txd = write(os.path.join(tmpdir, "generic.txd"), tex_dictionary([tex_native("grass")]))
        output_dir = os.path.join(tmpdir, "output")

        assert main([txd, "-o", output_dir, "--format", "dds"]) == 0
        assert os.listdir(os.path.join(output_dir, "generic")) == ["grass.dds"]


def test_cli_info(capsys):
    with tempfile.TemporaryDirectory() as tmpdir:
        dff = write(os.path.join(tmpdir, "car.dff"), simple_clump())
        output_dir = os.path.join(tmpdir, "output")

        assert main([dff, "--info", "-o", output_dir]) == 0
        assert not os.path.exists(output_dir)

    out = capsys.readouterr().out
    assert "1 frames" in out
    assert "1 atomics" in out
    assert "root" in out


def test_cli_img_archive():
    """Entries are read from the archive; --txd may name an archive member."""
    with tempfile.TemporaryDirectory() as tmpdir:
        img = write(os.path.join(tmpdir, "gta3.img"), img_archive([
            ("car.dff", simple_clump("wall01")),
            ("car.txd", tex_dictionary([tex_native("wall01")])),
            ("other.dff", simple_clump()),
        ]))
        output_dir = os.path.join(tmpdir, "output")

        assert main([img, "--entry", "car.dff", "--txd", "car.txd", "-o", output_dir]) == 0
        assert os.listdir(output_dir) == ["car.glb"]


def test_cli_input_not_found(capsys):
    assert main(["/nonexistent/model.dff"]) == 1
    assert "Input not found" in capsys.readouterr().err


def test_cli_empty_directory(capsys):
    with tempfile.TemporaryDirectory() as tmpdir:
        assert main([tmpdir, "-o", os.path.join(tmpdir, "out")]) == 1
    assert "No DFF/TXD files" in capsys.readouterr().err
