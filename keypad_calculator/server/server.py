"""TCP server running one isolated calculator session per connection."""
import socket
import threading
from typing import List, Optional

from pydantic import BaseModel, Field, IPvAnyAddress

from keypad_calculator.common.logger import logger
from keypad_calculator.session.session import CalculatorSession


INVALID_ENCODING_MESSAGE = "key-script is not valid UTF-8"


class KeypadServer(BaseModel):
    """
    TCP socket server replaying key-scripts sent by clients.

    Features:
        - Every connection gets its own CalculatorSession, nothing is shared between connections.
        - Each connection is handled on its own thread.
        - Answers with one "<key> -> <display>" line per key press.
        - An unknown key is reported on its line and the session carries on.
    """

    host: IPvAnyAddress = Field(default="127.0.0.1", description="Server host address")
    port: int = Field(default=9100, ge=1, le=65535, description="Server TCP port")
    max_connections: Optional[int] = Field(
        default=None, ge=1, description="Stop after this many connections (None serves forever)"
    )

    def _receive_data(self, conn: socket.socket) -> List[str]:
        """
        Receive the whole key-script from a client.

        :param socket.socket conn: Client connection

        :return: Stripped, non-empty lines
        :rtype: List[str]
        """
        chunks: List[bytes] = []
        while True:
            chunk = conn.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)

        lines = b"".join(chunks).decode("utf-8").splitlines()
        return [line.strip() for line in lines if line.strip()]

    def _handle_connection(self, conn: socket.socket) -> None:
        """
        Serve one client: receive its key-script, replay it on a fresh session, send the displays back.

        :param socket.socket conn: Client connection

        :return: None
        """
        with conn:
            try:
                lines = self._receive_data(conn)
            except UnicodeDecodeError as exc:
                logger.error(f"🎹❌ Key-script is not valid UTF-8: {exc}")
                payload = f"ERROR: {INVALID_ENCODING_MESSAGE}\n"
            else:
                session = CalculatorSession()
                logger.info(f"🎹🏁 Session started with {len(lines)} key(s)")
                presses = session.replay(lines)
                payload = "".join(f"{press.render()}\n" for press in presses)

            try:
                conn.sendall(payload.encode("utf-8"))
                logger.info("🎹✅ Results sent to client")
            except OSError as exc:
                logger.error("Client disconnected before receiving results: %s", exc)

    @staticmethod
    def _prune_finished(threads: List[threading.Thread]) -> List[threading.Thread]:
        """Keep only the connection threads still running."""
        return [thread for thread in threads if thread.is_alive()]

    def start(self) -> None:
        """
        Listen for clients and serve each one on its own thread.

        :return: None
        """
        logger.info("Starting server on %s:%d", self.host, self.port)
        threads: List[threading.Thread] = []

        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            s.bind((str(self.host), self.port))
            s.listen()
            logger.info("Server listening")

            served = 0
            while self.max_connections is None or served < self.max_connections:
                conn, address = s.accept()
                logger.info("Client connected from %s:%d", *address[:2])
                thread = threading.Thread(target=self._handle_connection, args=(conn,), daemon=True)
                thread.start()
                threads = self._prune_finished(threads)
                threads.append(thread)
                served += 1

        for thread in threads:
            thread.join()
        logger.info("Server stopped")
