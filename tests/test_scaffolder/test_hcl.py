"""Tests for the HCL text builders (platformgen.scaffolder.hcl)."""

from __future__ import annotations

import hcl2
import pytest

from platformgen.scaffolder.hcl import (
    Block,
    Expr,
    HclDocument,
    call,
    hcl_value,
    heredoc,
    quote,
    ref,
)

pytestmark = pytest.mark.unit


def unquote(value):
    """Newer python-hcl2 releases keep the quotes around string literals."""
    if isinstance(value, list):
        return [unquote(item) for item in value]
    if isinstance(value, str):
        return value.strip('"')
    return value


class TestValues:
    def test_scalars(self):
        assert hcl_value(True) == "true"
        assert hcl_value(None) == "null"
        assert hcl_value(3) == "3"
        assert hcl_value("x") == '"x"'

    def test_expressions_pass_through(self):
        assert hcl_value(ref("module", "network", "network_id")) == "module.network.network_id"
        assert hcl_value(Expr("count.index")) == "count.index"

    def test_quote_escapes_but_keeps_interpolation(self):
        assert quote('say "hi"\n') == '"say \\"hi\\"\\n"'
        assert quote("${var.project_name}-db") == '"${var.project_name}-db"'

    def test_call(self):
        rendered = hcl_value(call("merge", ref("local", "tags"), {"Name": "x"}))
        assert rendered.startswith("merge(local.tags, {")

    def test_short_list_stays_inline(self):
        assert hcl_value(["a", "b"]) == '["a", "b"]'
        assert hcl_value([]) == "[]"

    def test_long_list_wraps(self):
        rendered = hcl_value([f"10.0.{i}.0/24" for i in range(1, 6)])
        assert rendered.startswith("[\n")
        assert rendered.endswith(",\n]")

    def test_unsupported_value(self):
        with pytest.raises(TypeError):
            hcl_value(object())


class TestBlocks:
    def test_attributes_are_aligned(self):
        block = Block("variable", "region").attributes(type=Expr("string"), description="Region")
        assert block.render() == (
            'variable "region" {\n'
            "  type        = string\n"
            '  description = "Region"\n'
            "}"
        )

    def test_empty_block(self):
        assert Block("backend", "s3").render() == 'backend "s3" {}'

    def test_nested_blocks_are_separated(self):
        block = Block("resource", "aws_vpc", "main")
        block.attribute("cidr_block", ref("var", "vpc_cidr"))
        block.block("lifecycle").attribute("prevent_destroy", True)
        lines = block.render().splitlines()
        assert lines[1] == "  cidr_block = var.vpc_cidr"
        assert lines[2] == ""
        assert lines[3] == "  lifecycle {"

    def test_heredoc(self):
        block = Block("resource", "x", "y").attribute("policy", heredoc("line one\nline two"))
        assert "<<-EOT\n    line one\n    line two\n  EOT" in block.render()


class TestDocument:
    def test_render_parses_with_hcl2(self):
        doc = HclDocument()
        terraform = doc.block("terraform")
        terraform.attribute("required_version", ">= 1.5.0")
        terraform.block("required_providers").attribute(
            "aws", {"source": "hashicorp/aws", "version": "~> 5.0"}
        )
        doc.comment("network")
        doc.block("module", "aws_network").attributes(
            source="./modules/aws/network",
            azs=["us-east-1a", "us-east-1b"],
            tags=call("merge", ref("local", "tags"), {"Tier": "network"}),
        )
        text = doc.render()
        assert text.endswith("}\n")

        parsed = hcl2.loads(text)
        (label, module), = [
            (key, value) for key, value in parsed["module"][0].items() if not key.startswith("__")
        ]
        assert unquote(label) == "aws_network"
        assert unquote(module["source"]) == "./modules/aws/network"
        assert unquote(module["azs"]) == ["us-east-1a", "us-east-1b"]

    def test_tfvars_attributes(self):
        doc = HclDocument().attribute("environment", "staging").attribute("node_max_count", 5)
        assert doc.render() == 'environment    = "staging"\nnode_max_count = 5\n'
        parsed = hcl2.loads(doc.render())
        assert unquote(parsed["environment"]) == "staging"
        assert parsed["node_max_count"] == 5
