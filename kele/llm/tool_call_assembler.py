"""
Assembles streamed tool-call fragments into complete ToolCall objects.

Vendors stream a tool call in pieces: the id and name usually arrive once,
the JSON argument string arrives as an arbitrary number of fragments keyed by
the call's position in the turn.  The assembler keeps one buffer per index
and only hands out finished ``ToolCall`` objects on ``finalize()``, which
the adapters call when the terminating chunk arrives.

The argument string is concatenated verbatim in arrival order.  It is *not*
parsed here -- the executor decides what to do with malformed JSON.
"""

from __future__ import annotations

from kele.llm.types import ToolCall


class ToolCallAssembler:
    """Buffers tool-call fragments keyed by call index."""

    def __init__(self) -> None:
        self._buf: list[dict] = []

    def __len__(self) -> int:
        return len(self._buf)

    def __bool__(self) -> bool:
        return bool(self._buf)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def feed(
        self,
        index: int,
        *,
        id: str | None = None,
        name: str | None = None,
        arguments: str | None = None,
        type: str | None = None,
    ) -> None:
        """
        Record one fragment for the call at *index*.

        The buffer list grows to cover *index* if needed.  An id-bearing
        fragment (re)sets id, type and name; later fragments may only fill a
        name that is still empty.
        """
        if index < 0:
            raise ValueError(f"negative tool call index: {index}")
        while len(self._buf) <= index:
            self._buf.append({"id": "", "type": "function", "name": "", "args": []})

        buf = self._buf[index]
        if id:
            buf["id"] = id
            if type:
                buf["type"] = type
            if name:
                buf["name"] = name
        elif name and not buf["name"]:
            buf["name"] = name

        if arguments:
            buf["args"].append(arguments)

    def finalize(self) -> list[ToolCall]:
        """Return every buffered call in index order."""
        calls: list[ToolCall] = []
        for idx, buf in enumerate(self._buf):
            calls.append(
                ToolCall(
                    id=buf["id"] or f"call_{idx}",
                    name=buf["name"].strip(),
                    arguments="".join(buf["args"]),
                    type=buf["type"] or "function",
                )
            )
        return calls

    def reset(self) -> None:
        """Discard all accumulated state."""
        self._buf.clear()
