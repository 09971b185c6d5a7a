"""Common transport errors and writing rendered configuration to a node."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class TransportError(Exception):
    """Raised when a transport cannot connect, run or commit.

    ``reply`` holds the reply that caused the failure, when there is one.
    """

    def __init__(self, message: str, reply: Any = None) -> None:
        super().__init__(message)
        self.reply = reply


def write_config(transport, host: str, data: Sequence[str], info: Sequence[str]) -> None:
    """Connect to ``host`` and write each config snippet with its description.

    The transport is closed afterwards, even when a write fails.
    """
    try:
        transport.connect(host)
    except Exception as err:
        raise TransportError(f"{host}: {err}") from err
    try:
        for snippet, description in zip(data, info, strict=True):
            try:
                transport.write(snippet, description)
            except Exception as err:
                raise TransportError(f"could not write config {snippet}: {err}") from err
    finally:
        transport.close()