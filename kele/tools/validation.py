import jsonschema

from kele.tools.base import Tool, normalize_schema


class ToolValidator:
    @staticmethod
    def validate(tool: Tool, arguments: object) -> tuple[bool, str | None]:
        if not isinstance(arguments, dict):
            return False, "arguments must be a JSON object"
        try:
            jsonschema.validate(
                instance=arguments,
                schema=normalize_schema(tool.parameters),
            )
        except jsonschema.ValidationError as e:
            where = "/".join(str(p) for p in e.absolute_path)
            return False, f"{where}: {e.message}" if where else str(e.message)
        return True, None
