import os

from pandocd.cli import main


def test_cwd(capsys):
    assert main(["run", "cwd"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert os.getcwd() in out
    assert out[0] == "brace for impact"
    assert out[-1] == "did we lose anyone?"


def test_alias(capsys):
    assert main(["do", "cwd"]) == 0
    assert ":wave: over here, eh" in capsys.readouterr().out


def test_missing_config(tmp_path, capsys):
    assert main(["run", "-c", str(tmp_path / "missing.conf")]) == 1
    assert "[pandocd]:" in capsys.readouterr().err


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "usage:" in capsys.readouterr().out