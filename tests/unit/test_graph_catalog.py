"""Unit tests for the node catalog."""

from __future__ import annotations

import pytest


class TestDefaultCatalog:
    """Built-in node kinds and their ports."""

    def test_registers_builtin_kinds(self, catalog) -> None:
        types = {descriptor.type for descriptor in catalog.list_all()}
        assert types == {
            "trigger-command",
            "trigger-text",
            "trigger-callback",
            "condition-if",
            "action-message",
            "action-delay",
        }

    @pytest.mark.parametrize("node_type", ["trigger-command", "trigger-text", "trigger-callback"])
    def test_triggers_have_no_inputs(self, catalog, node_type: str) -> None:
        descriptor = catalog.describe(node_type)
        assert descriptor.input_ports == []
        assert descriptor.output_port_names == ["out"]

    def test_condition_ports_forbid_fan_out(self, catalog) -> None:
        descriptor = catalog.describe("condition-if")
        assert descriptor.input_ports == ["in"]
        assert descriptor.output_port_names == ["true", "false"]
        assert all(not port.fan_out for port in descriptor.output_ports)

    def test_action_output_fans_out(self, catalog) -> None:
        assert catalog.describe("action-message").output_port("out").fan_out is True

    def test_descriptor_wire_form(self, catalog) -> None:
        data = catalog.describe("action-delay").to_dict()
        assert data["type"] == "action-delay"
        assert data["inputPorts"] == ["in"]
        assert data["outputPorts"] == ["out"]
        assert "delaySeconds" in data["configSchema"]["properties"]

    def test_default_catalog_is_cached(self) -> None:
        from botflow.graph.catalog import get_default_catalog

        assert get_default_catalog() is get_default_catalog()


class TestLookup:
    def test_describe_unknown_raises(self, catalog) -> None:
        from botflow.exceptions import UnknownNodeTypeError

        with pytest.raises(UnknownNodeTypeError):
            catalog.describe("action-webhook")

    def test_get_unknown_returns_none(self, catalog) -> None:
        assert catalog.get("action-webhook") is None
        assert "action-webhook" not in catalog
        assert "action-message" in catalog


class TestParseConfig:
    def test_parses_typed_config(self, catalog) -> None:
        from botflow.schema.nodes import DelayActionConfig

        config = catalog.parse_config("action-delay", {"delaySeconds": 2})
        assert isinstance(config, DelayActionConfig)
        assert config.delay_seconds == 2.0

    def test_invalid_config_lists_field_errors(self, catalog) -> None:
        from botflow.exceptions import NodeConfigError

        with pytest.raises(NodeConfigError) as exc_info:
            catalog.parse_config("action-delay", {"delaySeconds": -1})

        assert exc_info.value.node_type == "action-delay"
        assert any("delaySeconds" in detail for detail in exc_info.value.errors)

    def test_unknown_kind_keeps_raw_keys(self, catalog) -> None:
        from botflow.schema.nodes import GenericNodeConfig

        config = catalog.parse_config("action-webhook", {"url": "https://example.org"})
        assert isinstance(config, GenericNodeConfig)
        assert config.model_dump()["url"] == "https://example.org"

    def test_none_config_uses_defaults(self, catalog) -> None:
        config = catalog.parse_config("condition-if", None)
        assert config.expression == ""


class TestPortResolution:
    def test_absent_handle_selects_single_output(self, catalog) -> None:
        assert catalog.resolve_output_port("action-message", None).name == "out"

    def test_absent_handle_on_condition_is_rejected(self, catalog) -> None:
        from botflow.exceptions import InvalidEndpointError

        with pytest.raises(InvalidEndpointError):
            catalog.resolve_output_port("condition-if", None, node_id="check")

    def test_unknown_output_port_is_rejected(self, catalog) -> None:
        from botflow.exceptions import InvalidEndpointError

        with pytest.raises(InvalidEndpointError) as exc_info:
            catalog.resolve_output_port("condition-if", "maybe", node_id="check")

        assert exc_info.value.port == "maybe"
        assert "true, false" in str(exc_info.value)

    def test_trigger_accepts_no_input(self, catalog) -> None:
        from botflow.exceptions import InvalidEndpointError

        with pytest.raises(InvalidEndpointError):
            catalog.resolve_input_port("trigger-command", None, node_id="start")

    def test_unknown_kind_accepts_any_handle(self, catalog) -> None:
        assert catalog.resolve_output_port("action-webhook", "anything").name == "anything"
        assert catalog.resolve_input_port("action-webhook", None) == "in"


class TestCustomCatalog:
    def test_register_custom_kind(self) -> None:
        from botflow.graph.catalog import NodeCatalog, NodeCategory, OutputPort
        from botflow.schema.nodes import NodeConfigBase

        class PingConfig(NodeConfigBase):
            host: str = "localhost"

        catalog = NodeCatalog()
        catalog.register(
            node_type="action-ping",
            category=NodeCategory.ACTION,
            config_model=PingConfig,
            input_ports=["in"],
            output_ports=[OutputPort("out")],
        )

        assert catalog.describe("action-ping").category == NodeCategory.ACTION
        assert catalog.parse_config("action-ping", {}).host == "localhost"
