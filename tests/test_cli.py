from click.testing import CliRunner
from cryptography.hazmat.primitives import serialization

from certoracle.responder.cli import entry_point
from conftest import REVOKED_01A2, VALID_01A2, append_index, write_index


def _run(*args):
    return CliRunner().invoke(entry_point, list(args))


def test_lookup(tmp_path):
    path = tmp_path / "index.txt"
    write_index(path, VALID_01A2)
    result = _run("lookup", "--index", str(path), "01a2")
    assert result.exit_code == 0
    assert result.output.strip() == "1A2 good"

    append_index(path, REVOKED_01A2)
    result = _run("lookup", "--index", str(path), "1A2")
    assert result.output.strip() == "1A2 revoked 250601000000Z"

    result = _run("lookup", "--index", str(path), "FFFF")
    assert result.output.strip() == "FFFF unknown"


def test_lookup_bad_serial(tmp_path):
    result = _run("lookup", "--index", str(tmp_path / "index.txt"), "zz")
    assert result.exit_code != 0


def test_list(tmp_path):
    path = tmp_path / "index.txt"
    write_index(path, VALID_01A2, REVOKED_01A2, "V\t260101000000Z\t\t05\tunknown\tfive")
    result = _run("list", "--index", str(path))
    assert result.exit_code == 0
    assert result.output.splitlines() == [
        "V 5 260101000000Z - five",
        "R 1A2 260101000000Z 250601000000Z client",
    ]


def test_add_and_revoke(tmp_path, pki):
    cert_path = tmp_path / "client.crt"
    cert_path.write_bytes(pki.leaf(0xC0FFEE).public_bytes(serialization.Encoding.PEM))
    path = tmp_path / "index.txt"

    result = _run("add", "--index", str(path), str(cert_path))
    assert result.exit_code == 0, result.output
    line = path.read_text().splitlines()[-1].split("\t")
    assert line[0] == "V"
    assert line[2] == ""
    assert line[3] == "C0FFEE"
    assert line[4] == str(cert_path)
    assert line[5] == "client"

    result = _run("revoke", "--index", str(path), "--time", "250601000000Z", "c0ffee")
    assert result.exit_code == 0, result.output
    line = path.read_text().splitlines()[-1].split("\t")
    assert line[:4] == ["R", line[1], "250601000000Z", "C0FFEE"]

    result = _run("revoke", "--index", str(path), "c0ffee")
    assert result.exit_code != 0
    assert "already revoked" in result.output


def test_revoke_unknown(tmp_path):
    path = tmp_path / "index.txt"
    write_index(path, VALID_01A2)
    result = _run("revoke", "--index", str(path), "BEEF")
    assert result.exit_code != 0
    assert "not found" in result.output


def test_serve_fails_fast_without_certificates(tmp_path):
    result = _run("serve",
        "--index", str(tmp_path / "index.txt"),
        "--ca-cert", str(tmp_path / "missing-ca.crt"),
        "--responder-cert", str(tmp_path / "missing.crt"),
        "--responder-key", str(tmp_path / "missing.key"),
        "--log-file", str(tmp_path / "ocsp.log"))
    assert result.exit_code == 255
    assert "missing-ca.crt" in (tmp_path / "ocsp.log").read_text()


def test_read_commands_require_existing_index(tmp_path):
    path = tmp_path / "typo.txt"
    for args in (("lookup", "--index", str(path), "01A2"),
            ("list", "--index", str(path)),
            ("revoke", "--index", str(path), "01A2")):
        result = _run(*args)
        assert result.exit_code != 0
        assert "does not exist" in result.output
    assert not path.exists()
