"""
Incremental decoder for server-sent event streams.

Network reads split the stream at arbitrary byte offsets, including in the
middle of a line, of the "data:" prefix, or of a multi-byte character. The
decoder keeps the unfinished tail between calls so the frames it returns do
not depend on where the splits fell.
"""

from vendorlink.config import SSE_DATA_PREFIX, SSE_DONE_TOKEN


class SSEDecoder:
    """
    Turns raw byte chunks into data-frame payloads.

    Usage:
        decoder = SSEDecoder()
        async for chunk in response.aiter_bytes():
            for payload in decoder.feed(chunk):
                handle(json.loads(payload))
            if decoder.done:
                break
    """

    def __init__(
        self,
        prefixes: tuple[str, ...] = (SSE_DATA_PREFIX,),
        done_token: str = SSE_DONE_TOKEN,
    ):
        self._buffer = bytearray()
        self._prefixes = prefixes
        self._done_token = done_token
        self.done = False

    def feed(self, chunk: bytes) -> list[str]:
        """
        Append a chunk and return the payloads of every completed data frame.

        Stops at the terminal token: frames after it in the same chunk are
        dropped and later calls return nothing.
        """
        if self.done or not chunk:
            return []

        self._buffer.extend(chunk)
        payloads = []

        while True:
            newline = self._buffer.find(b"\n")
            if newline < 0:
                break
            raw = bytes(self._buffer[:newline])
            del self._buffer[:newline + 1]
            if raw.endswith(b"\r"):
                raw = raw[:-1]

            payload = self._payload(raw.decode("utf-8", errors="replace"))
            if payload is None:
                continue
            if payload == self._done_token:
                self.done = True
                self._buffer.clear()
                break
            payloads.append(payload)

        return payloads

    def _payload(self, line: str):
        """Return the trimmed frame payload, or None for non-data and empty lines."""
        trimmed = line.strip()
        for prefix in self._prefixes:
            if trimmed.startswith(prefix):
                data = trimmed[len(prefix):].strip()
                return data or None
        return None
