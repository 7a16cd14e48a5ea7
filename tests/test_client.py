"""Test class KeypadClient and key-script loading."""
import socket
import tarfile
import zipfile

import py7zr
from pydantic import ValidationError
import pytest

from keypad_calculator.client.client import KeypadClient, extract_archive, read_key_script


def test_client_valid_config() -> None:
    """Check that a valid host and port correctly initialize the client."""
    client = KeypadClient(host="127.0.0.1", port=9100)
    assert str(client.host) == "127.0.0.1"
    assert client.port == 9100


def test_client_invalid_ip() -> None:
    """Ensure invalid IP addresses raise a ValidationError."""
    with pytest.raises(ValidationError):
        KeypadClient(host="999.999.999.999", port=9100)


def test_client_invalid_port() -> None:
    """Ensure ports outside valid range raise a ValidationError."""
    with pytest.raises(ValidationError):
        KeypadClient(host="127.0.0.1", port=70000)


def test_client_is_frozen() -> None:
    client = KeypadClient()
    with pytest.raises(ValidationError):
        client.port = 9200


def test_send_file_txt(tmp_path, monkeypatch) -> None:
    """Verify sending a plain text key-script writes the server response to output."""
    input_file = tmp_path / "keys.txt"
    output_file = tmp_path / "results.txt"

    input_file.write_text("1\n+\n1\n=\n")

    class FakeSocket:
        def __init__(self):
            self.calls = 0
            self.connected_to = None

        def connect(self, addr):
            self.connected_to = addr

        def sendall(self, data):
            assert data == b"1\n+\n1\n=\n"

        def shutdown(self, how):
            assert how == socket.SHUT_WR

        def recv(self, size):
            self.calls += 1
            if self.calls == 1:
                return b"1 -> 1\n+ -> 1+\n"
            if self.calls == 2:
                return b"1 -> 1+1\n= -> 2\n"
            return b""

        def __enter__(self):
            return self

        def __exit__(self, *args):
            pass

    fake = FakeSocket()
    monkeypatch.setattr(socket, "socket", lambda *a, **kw: fake)

    client = KeypadClient()
    client.send_file(input_file, output_file)

    assert fake.connected_to == ("127.0.0.1", 9100)
    assert output_file.read_text() == "1 -> 1\n+ -> 1+\n1 -> 1+1\n= -> 2\n"


def test_read_key_script_txt(tmp_path) -> None:
    txt = tmp_path / "keys.txt"
    txt.write_text("7\n=\n")
    assert read_key_script(txt) == "7\n=\n"


def test_extract_zip(tmp_path) -> None:
    """Check that a .zip archive can be extracted and read correctly."""
    txt = tmp_path / "keys.txt"
    txt.write_text("3\n+\n3\n")

    zip_path = tmp_path / "keys.zip"
    with zipfile.ZipFile(zip_path, "w") as zf:
        zf.write(txt, arcname="keys.txt")

    assert extract_archive(zip_path) == "3\n+\n3\n"
    assert read_key_script(zip_path) == "3\n+\n3\n"


def test_extract_tar_xz(tmp_path) -> None:
    """Check that a .tar.xz archive can be extracted and read correctly."""
    txt = tmp_path / "keys.txt"
    txt.write_text("4\n*\n4\n")

    tar_path = tmp_path / "keys.tar.xz"
    with tarfile.open(tar_path, "w:xz") as tf:
        tf.add(txt, arcname="keys.txt")

    assert extract_archive(tar_path) == "4\n*\n4\n"


def test_extract_7z(tmp_path) -> None:
    """Check that a .7z archive can be extracted and read correctly."""
    txt = tmp_path / "keys.txt"
    txt.write_text("5\n-\n2\n")

    archive_path = tmp_path / "keys.7z"
    with py7zr.SevenZipFile(archive_path, "w") as archive:
        archive.write(txt, arcname="keys.txt")

    assert extract_archive(archive_path) == "5\n-\n2\n"


def test_extract_archive_no_txt(tmp_path) -> None:
    """Verify that extraction fails if no .txt file exists in the archive."""
    zip_path = tmp_path / "empty.zip"
    with zipfile.ZipFile(zip_path, "w") as zf:
        zf.writestr("data.bin", b"\x00\x01")

    with pytest.raises(ValueError):
        extract_archive(zip_path)


def test_extract_unsupported_format(tmp_path) -> None:
    """Ensure unsupported archive formats raise a ValueError."""
    file_path = tmp_path / "keys.rar"
    file_path.write_text("1")

    with pytest.raises(ValueError):
        read_key_script(file_path)


def test_extract_picks_first_script_by_name(tmp_path) -> None:
    """With several .txt members, the first by name wins regardless of storage order."""
    zip_path = tmp_path / "keys.zip"
    with zipfile.ZipFile(zip_path, "w") as zf:
        zf.writestr("b_second.txt", "2\n")
        zf.writestr("notes.md", "ignored")
        zf.writestr("a_first.txt", "1\n")

    assert extract_archive(zip_path) == "1\n"


def test_extract_tar_xz_skips_directories(tmp_path) -> None:
    scripts = tmp_path / "scripts.txt"
    scripts.mkdir()
    txt = tmp_path / "keys.txt"
    txt.write_text("9\n")

    tar_path = tmp_path / "keys.tar.xz"
    with tarfile.open(tar_path, "w:xz") as tf:
        tf.add(scripts, arcname="scripts.txt")
        tf.add(txt, arcname="z/keys.txt")

    assert extract_archive(tar_path) == "9\n"


@pytest.mark.parametrize("content", [b"", b"\n  \n"])
def test_empty_key_script_rejected(tmp_path, content: bytes) -> None:
    """A key-script without any key press is rejected, plain or archived."""
    txt = tmp_path / "keys.txt"
    txt.write_bytes(content)
    with pytest.raises(ValueError):
        read_key_script(txt)

    zip_path = tmp_path / "keys.zip"
    with zipfile.ZipFile(zip_path, "w") as zf:
        zf.writestr("keys.txt", content)
    with pytest.raises(ValueError):
        read_key_script(zip_path)


def test_key_script_not_utf8_rejected(tmp_path) -> None:
    txt = tmp_path / "keys.txt"
    txt.write_bytes(b"\xff\xfe1\n")
    with pytest.raises(ValueError):
        read_key_script(txt)


def test_extract_7z_without_script(tmp_path) -> None:
    data = tmp_path / "data.bin"
    data.write_bytes(b"\x00")

    archive_path = tmp_path / "keys.7z"
    with py7zr.SevenZipFile(archive_path, "w") as archive:
        archive.write(data, arcname="data.bin")

    with pytest.raises(ValueError):
        extract_archive(archive_path)
