"""
Command line entrypoint.

This script replays a key-script (one key press per line) and writes one
"<key> -> <display>" line per key press next to the input file.

- With --local, the key-script is replayed in-process on a single session.
- Otherwise a keypad server is started in its own process and the client sends
  the key-script to it over TCP.
"""

from multiprocessing import Process
from pathlib import Path
import time
import argparse
from typing import Optional

from pydantic import BaseModel, FilePath, ValidationError

from keypad_calculator.client.client import KeypadClient, read_key_script
from keypad_calculator.common.logger import logger
from keypad_calculator.server.server import KeypadServer
from keypad_calculator.session.session import CalculatorSession


class CliArgs(BaseModel):
    """
    Pydantic model used to validate CLI arguments.

    Attributes
    ----------
    file_path : FilePath
        Path to the key-script or an archive holding it.
    local : bool
        Replay in-process instead of going through the server.
    """

    file_path: FilePath
    local: bool = False


def run_server() -> None:
    """
    Start the keypad server for a single connection.

    The server runs in its own process and listens for the client.
    """
    server = KeypadServer(max_connections=1)
    server.start()


def parse_args(argv: Optional[list[str]] = None) -> CliArgs:
    """
    Parse and validate command-line arguments.

    :param argv: Arguments to parse (defaults to sys.argv)
    :return: Validated CLI arguments
    :rtype: CliArgs
    """
    parser = argparse.ArgumentParser(description="Keypad calculator key-script runner")

    parser.add_argument("file_path", help="Path to the key-script (.txt, .zip, .tar.xz or .7z)")
    parser.add_argument("--local", action="store_true", help="Replay in-process without the TCP server")

    args = parser.parse_args(argv)

    try:
        return CliArgs(file_path=args.file_path, local=args.local)
    except ValidationError as exc:
        parser.error(str(exc))


def build_output_path(input_path: Path) -> Path:
    """
    Construct the output file path based on the input file.

    - Preserves the original folder
    - Replaces dots in extensions with underscores
    - Appends '_results.txt' at the end

    Examples
    --------
    input: scripts/keys.7z
    output: scripts/keys_7z_results.txt
    input: scripts/keys.tar.xz
    output: scripts/keys_tar_xz_results.txt

    :param input_path: Path to the input file
    :return: Path to the output file
    """
    suffixes = "".join(input_path.suffixes)
    base = input_path.name[: len(input_path.name) - len(suffixes)]
    return input_path.with_name(f"{base}{suffixes.replace('.', '_')}_results.txt")


def replay_locally(input_path: Path, output_path: Path) -> None:
    """
    Replay a key-script on an in-process session and write the results.

    :param input_path: Path to the key-script or archive
    :param output_path: Path where the results are written
    """
    session = CalculatorSession()
    presses = session.replay(read_key_script(input_path).splitlines())
    output_path.write_text("".join(f"{press.render()}\n" for press in presses), encoding="utf-8")
    logger.info(f"Replayed {len(presses)} key(s), display: {session.display!r}")


def main(argv: Optional[list[str]] = None) -> None:
    """
    Main function of the keypad-calculator command.
    """
    cli_args = parse_args(argv)
    input_path: Path = Path(cli_args.file_path)
    output_path: Path = build_output_path(input_path)

    if cli_args.local:
        replay_locally(input_path, output_path)
        return

    server_process = Process(target=run_server)
    server_process.start()

    # Give the server time to start listening
    time.sleep(1)

    try:
        client = KeypadClient()
        client.send_file(input_path, output_path)
    finally:
        # Ensure the server is always stopped
        server_process.terminate()
        server_process.join()

    logger.info(f"Results written to {output_path}")


if __name__ == "__main__":
    main()
