"""TCP client."""
from pathlib import Path
import socket
import tarfile
import tempfile
from typing import Callable, Dict
import zipfile

import py7zr
from pydantic import BaseModel, ConfigDict, Field, FilePath, IPvAnyAddress


# Key-scripts are plain text; inside an archive they are the .txt members
KEY_SCRIPT_SUFFIX = ".txt"


def _zip_scripts(archive_path: Path) -> Dict[str, bytes]:
    with zipfile.ZipFile(archive_path, "r") as zf:
        return {
            info.filename: zf.read(info)
            for info in zf.infolist()
            if not info.is_dir() and info.filename.endswith(KEY_SCRIPT_SUFFIX)
        }


def _tar_xz_scripts(archive_path: Path) -> Dict[str, bytes]:
    with tarfile.open(archive_path, "r:xz") as tf:
        return {
            member.name: tf.extractfile(member).read()
            for member in tf.getmembers()
            if member.isfile() and member.name.endswith(KEY_SCRIPT_SUFFIX)
        }


def _seven_zip_scripts(archive_path: Path) -> Dict[str, bytes]:
    with py7zr.SevenZipFile(archive_path, mode="r") as archive:
        names = [name for name in archive.getnames() if name.endswith(KEY_SCRIPT_SUFFIX)]
        if not names:
            return {}
        # py7zr only extracts to disk
        with tempfile.TemporaryDirectory() as tmpdir:
            archive.extract(path=tmpdir, targets=names)
            extracted = {name: Path(tmpdir) / name for name in names}
            return {name: path.read_bytes() for name, path in extracted.items() if path.is_file()}


# Archive format -> reader returning every key-script member as {name: raw bytes}
ARCHIVE_READERS: Dict[str, Callable[[Path], Dict[str, bytes]]] = {
    ".zip": _zip_scripts,
    ".tar.xz": _tar_xz_scripts,
    ".7z": _seven_zip_scripts,
}


def _archive_format(archive_path: Path) -> str:
    if archive_path.suffixes[-2:] == [".tar", ".xz"]:
        return ".tar.xz"
    return archive_path.suffix


def _decode_script(content: bytes, source: str) -> str:
    """
    Decode a key-script and make sure it presses at least one key.

    :param bytes content: Raw key-script
    :param str source: Where the key-script comes from, for error messages

    :return: Key-script text
    :rtype: str
    :raises ValueError: If the key-script is not UTF-8 or only holds blank lines
    """
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ValueError(f"📄❌ Key-script {source} is not valid UTF-8") from exc
    if not text.strip():
        raise ValueError(f"📄❌ Key-script {source} holds no key presses")
    return text


def extract_archive(archive_path: Path) -> str:
    """
    Read the key-script stored in an archive.

    Supported formats: .zip, .tar.xz, .7z. When the archive holds several .txt members,
    the first one by name is used, whatever order the archiving tool stored them in.

    :param Path archive_path: Path to the archive file

    :return: Key-script content
    :rtype: str
    :raises ValueError: If the format is unsupported, no .txt member exists or the key-script is empty
    """
    archive_format = _archive_format(archive_path)
    if archive_format not in ARCHIVE_READERS:
        raise ValueError(f"📄❌ Unsupported archive format: {archive_path.suffix}")

    scripts = ARCHIVE_READERS[archive_format](archive_path)
    if not scripts:
        raise ValueError(f"📄❌ No {KEY_SCRIPT_SUFFIX} key-script found in {archive_path.name}")

    name = min(scripts)
    return _decode_script(scripts[name], f"{archive_path.name}:{name}")


def read_key_script(input_file: Path) -> str:
    """
    Read a key-script from a plain text file or from an archive.

    :param Path input_file: Path to a .txt file or to a .zip, .tar.xz or .7z archive

    :return: Key-script content
    :rtype: str
    :raises ValueError: If the key-script cannot be found, decoded, or is empty
    """
    if input_file.suffix == KEY_SCRIPT_SUFFIX:
        return _decode_script(input_file.read_bytes(), input_file.name)
    return extract_archive(input_file)


class KeypadClient(BaseModel):
    """
    TCP client sending a key-script to the keypad server and receiving the displays.

    The TCP client:
    - reads a key-script from a plain text file or an archive
    - sends it to the server over a TCP socket
    - receives one "<key> -> <display>" line per key press
    - writes them into an output file
    """

    # Immutable, so the network configuration cannot change mid-run
    model_config = ConfigDict(frozen=True)

    host: IPvAnyAddress = Field(default="127.0.0.1", description="Server host address")
    port: int = Field(default=9100, ge=1, le=65535, description="Server TCP port")

    def send_file(self, input_file: FilePath, output_file: Path) -> None:
        """
        Send a key-script to the server and write the returned displays to an output file.

        :param FilePath input_file: Path to the key-script or an archive holding it
        :param Path output_file: Path where the displays will be written

        :return: None
        :raises ValueError: If the archive format is unsupported or contains no .txt file
        """
        content = read_key_script(input_file)

        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.connect((str(self.host), self.port))
            s.sendall(content.encode("utf-8"))
            # Signal that no more keys will be sent
            s.shutdown(socket.SHUT_WR)

            # The response may arrive in several chunks, the server closes when done
            chunks: list[bytes] = []
            while True:
                chunk = s.recv(4096)
                if not chunk:
                    break
                chunks.append(chunk)

        # Decode once, a multi-byte character may straddle two chunks
        output_file.write_text(b"".join(chunks).decode("utf-8"), encoding="utf-8")
