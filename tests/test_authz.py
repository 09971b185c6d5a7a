import os
import stat

from clabkit.authz import create_authz_keys_file


def test_keys_concatenated_in_order(tmp_path):
    ssh = tmp_path / "ssh"
    lab = tmp_path / "lab"
    ssh.mkdir()
    lab.mkdir()
    (ssh / "b.pub").write_bytes(b"key-b\n")
    (ssh / "a.pub").write_bytes(b"key-a\n")
    (ssh / "authorized_keys").write_bytes(b"key-host\n")
    (ssh / "id_private").write_bytes(b"not a public key\n")

    path = create_authz_keys_file(str(lab), str(ssh))

    assert path == os.path.join(str(lab), "authorized_keys")
    with open(path, "rb") as f:
        assert f.read() == b"key-a\nkey-b\nkey-host\n"
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o644


def test_only_authorized_keys(tmp_path):
    ssh = tmp_path / "ssh"
    ssh.mkdir()
    (ssh / "authorized_keys").write_bytes(b"key-host\n")
    path = create_authz_keys_file(str(tmp_path), str(ssh))
    with open(path, "rb") as f:
        assert f.read() == b"key-host\n"


def test_no_keys(tmp_path):
    ssh = tmp_path / "ssh"
    lab = tmp_path / "lab"
    ssh.mkdir()
    lab.mkdir()
    assert create_authz_keys_file(str(lab), str(ssh)) is None
    assert os.listdir(lab) == []