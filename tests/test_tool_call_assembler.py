"""Tests for kele.llm.tool_call_assembler.ToolCallAssembler."""

from __future__ import annotations

import json

import pytest

from kele.llm.tool_call_assembler import ToolCallAssembler
from kele.llm.types import ToolCall


class TestSingleToolCall:
    """Assemble a single tool call from incremental fragments."""

    def test_basic_assembly(self):
        asm = ToolCallAssembler()
        asm.feed(0, id="call_1", name="read_file")
        asm.feed(0, arguments='{"path": ')
        asm.feed(0, arguments='"/etc/hosts"}')

        result = asm.finalize()
        assert len(result) == 1
        tc = result[0]
        assert tc.id == "call_1"
        assert tc.name == "read_file"
        assert json.loads(tc.arguments) == {"path": "/etc/hosts"}

    def test_single_fragment_with_everything(self):
        asm = ToolCallAssembler()
        asm.feed(0, id="call_x", name="ping", arguments='{"host": "localhost"}')
        assert asm.finalize() == [
            ToolCall(id="call_x", name="ping", arguments='{"host": "localhost"}')
        ]

    def test_arguments_kept_verbatim(self):
        """Invalid JSON is not the assembler's business."""
        asm = ToolCallAssembler()
        asm.feed(0, id="call_bad", name="broken")
        asm.feed(0, arguments='{"key": INVALID')
        assert asm.finalize()[0].arguments == '{"key": INVALID'

    def test_missing_id_gets_positional_id(self):
        asm = ToolCallAssembler()
        asm.feed(0, name="a")
        asm.feed(1, name="b")
        assert [tc.id for tc in asm.finalize()] == ["call_0", "call_1"]

    def test_name_not_overwritten_by_later_fragment(self):
        asm = ToolCallAssembler()
        asm.feed(0, id="c1", name="bash")
        asm.feed(0, name="other")
        assert asm.finalize()[0].name == "bash"

    def test_id_fragment_sets_type(self):
        asm = ToolCallAssembler()
        asm.feed(0, id="c1", name="bash", type="function")
        assert asm.finalize()[0].type == "function"


class TestFragmentedArguments:
    """Arguments equal the concatenation of fragments in arrival order."""

    @pytest.mark.parametrize("pieces", [1, 2, 3, 7, 50])
    def test_split_into_n_pieces(self, pieces):
        args = json.dumps({"command": "ls -la /var/log", "timeout": 30})
        size = max(1, len(args) // pieces)
        chunks = [args[i:i + size] for i in range(0, len(args), size)]

        asm = ToolCallAssembler()
        asm.feed(0, id="call_1", name="bash")
        for chunk in chunks:
            asm.feed(0, arguments=chunk)

        assert asm.finalize()[0].arguments == args

    def test_interleaved_indices(self):
        asm = ToolCallAssembler()
        asm.feed(0, id="a", name="read")
        asm.feed(1, id="b", name="write")
        asm.feed(0, arguments='{"path":')
        asm.feed(1, arguments='{"path":"out",')
        asm.feed(0, arguments='"in"}')
        asm.feed(1, arguments='"content":"x"}')

        calls = asm.finalize()
        assert [c.name for c in calls] == ["read", "write"]
        assert json.loads(calls[0].arguments) == {"path": "in"}
        assert json.loads(calls[1].arguments) == {"path": "out", "content": "x"}

    def test_out_of_order_index_grows_buffer(self):
        asm = ToolCallAssembler()
        asm.feed(2, id="c", name="third")
        assert len(asm) == 3
        calls = asm.finalize()
        assert calls[2].name == "third"
        assert calls[0].id == "call_0"


class TestLifecycle:
    def test_empty_is_falsy(self):
        asm = ToolCallAssembler()
        assert not asm
        assert asm.finalize() == []

    def test_reset_clears_state(self):
        asm = ToolCallAssembler()
        asm.feed(0, id="c1", name="bash")
        assert asm
        asm.reset()
        assert not asm
        assert len(asm) == 0

    def test_negative_index_rejected(self):
        asm = ToolCallAssembler()
        with pytest.raises(ValueError, match="negative"):
            asm.feed(-1, name="x")
