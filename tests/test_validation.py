"""Tests for ToolValidator."""

from kele.tools.base import normalize_schema
from kele.tools.validation import ToolValidator
from tests.mock_tools import BashTool, EchoTool, FailingTool


class NestedTool(EchoTool):
    @property
    def name(self) -> str:
        return "nested"

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "options": {
                    "type": "object",
                    "properties": {"depth": {"type": "integer"}},
                },
            },
            "additionalProperties": False,
        }


class BareSchemaTool(EchoTool):
    @property
    def parameters(self) -> dict:
        return {}


class TestToolValidator:
    def test_valid_args_pass(self):
        ok, err = ToolValidator.validate(EchoTool(), {"message": "hello"})
        assert ok is True
        assert err is None

    def test_missing_required_arg_fails(self):
        ok, err = ToolValidator.validate(BashTool(), {})
        assert ok is False
        assert "'command' is a required property" in err

    def test_type_mismatch(self):
        ok, err = ToolValidator.validate(EchoTool(), {"message": 12345})
        assert ok is False
        assert err.startswith("message: ")

    def test_nested_error_path(self):
        ok, err = ToolValidator.validate(NestedTool(), {"options": {"depth": "deep"}})
        assert ok is False
        assert err.startswith("options/depth: ")

    def test_additional_properties_false(self):
        ok, err = ToolValidator.validate(NestedTool(), {"rogue": 1})
        assert ok is False
        assert "rogue" in err

    def test_extra_keys_allowed_by_default(self):
        ok, _ = ToolValidator.validate(EchoTool(), {"message": "hi", "extra": True})
        assert ok is True

    def test_empty_dict_without_required_fields(self):
        ok, err = ToolValidator.validate(FailingTool(), {})
        assert ok is True
        assert err is None

    def test_non_object_arguments(self):
        ok, err = ToolValidator.validate(EchoTool(), ["hello"])
        assert ok is False
        assert err == "arguments must be a JSON object"

    def test_bare_schema_accepts_object(self):
        ok, _ = ToolValidator.validate(BareSchemaTool(), {"anything": 1})
        assert ok is True


class TestNormalizeSchema:
    def test_fills_defaults(self):
        assert normalize_schema({}) == {"type": "object", "properties": {}}

    def test_keeps_existing(self):
        schema = {"type": "object", "properties": {"a": {"type": "string"}}}
        assert normalize_schema(schema) == schema

    def test_does_not_mutate(self):
        schema = {"properties": {}}
        normalize_schema(schema)
        assert schema == {"properties": {}}
