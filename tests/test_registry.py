import pytest
from conftest import make_tool

from blade_core.core.types import PermissionMode, ToolKind
from blade_core.tools.base.registry import ToolRegistry
from blade_core.utils.errors import DuplicateToolError


class TestToolRegistry:
    def test_register_and_lookup(self):
        registry = ToolRegistry()
        tool = make_tool("Read")
        registry.register(tool)

        assert registry.get("Read") is tool
        assert registry.has("Read")
        assert "Read" in registry
        assert registry.get("Missing") is None
        assert len(registry) == 1

    def test_duplicate_name_is_rejected(self):
        registry = ToolRegistry([make_tool("Read")])
        with pytest.raises(DuplicateToolError) as exc_info:
            registry.register(make_tool("Read", ToolKind.WRITE))
        assert exc_info.value.name == "Read"
        assert registry.get("Read").kind == ToolKind.READ_ONLY

    def test_register_all_reports_every_duplicate(self):
        registry = ToolRegistry([make_tool("Read"), make_tool("Write")])
        with pytest.raises(DuplicateToolError) as exc_info:
            registry.register_all(
                [make_tool("Read"), make_tool("Grep"), make_tool("Write")]
            )
        assert exc_info.value.name == "Read, Write"
        assert registry.has("Grep")

    def test_list_names_is_sorted(self):
        registry = ToolRegistry([make_tool("b"), make_tool("a"), make_tool("c")])
        assert registry.list_names() == ["a", "b", "c"]

    def test_read_only_tools(self):
        registry = ToolRegistry(
            [make_tool("Read"), make_tool("Write", ToolKind.WRITE)]
        )
        assert [t.name for t in registry.get_read_only_tools()] == ["Read"]


class TestFunctionDeclarations:
    @pytest.fixture
    def registry(self):
        return ToolRegistry(
            [
                make_tool("Read"),
                make_tool("Write", ToolKind.WRITE, description="writes"),
                make_tool("ExitPlan", ToolKind.EXECUTE, exits_plan_mode=True),
            ]
        )

    def test_all_tools_outside_plan_mode(self, registry):
        declarations = registry.get_function_declarations()
        assert [d["name"] for d in declarations] == ["Read", "Write", "ExitPlan"]
        write = declarations[1]
        assert write["description"] == "writes"
        assert write["parameters"]["required"] == ["file_path"]

    def test_plan_mode_offers_read_only_and_exit(self, registry):
        names = [
            d["name"]
            for d in registry.get_function_declarations(PermissionMode.PLAN)
        ]
        assert names == ["Read", "ExitPlan"]

    def test_mode_accepts_plain_strings(self, registry):
        assert len(registry.get_function_declarations("plan")) == 2
        assert len(registry.get_function_declarations("yolo")) == 3
