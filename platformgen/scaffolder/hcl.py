"""Composable builders for HCL (Terraform) text.

Generators assemble Terraform files from :class:`Block` objects instead of
concatenating strings, so quoting, indentation and ``=`` alignment are
handled in one place::

    doc = HclDocument()
    vpc = doc.block("resource", "aws_vpc", "main")
    vpc.attribute("cidr_block", ref("var", "vpc_cidr"))
    vpc.attribute("tags", call("merge", ref("var", "tags"), {"Name": "main"}))
    text = doc.render()
"""

from __future__ import annotations

import re
from typing import Any

_INDENT = "  "
_BARE_KEY = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


class Expr(str):
    """A raw HCL expression, emitted verbatim (``var.region``, ``count.index``)."""


class Call:
    """A function call expression whose arguments are rendered as HCL values."""

    def __init__(self, name: str, *args: Any) -> None:
        self.name = name
        self.args = args


class Heredoc:
    """A ``<<-MARKER`` heredoc string."""

    def __init__(self, text: str, marker: str = "EOT") -> None:
        self.text = text.rstrip("\n")
        self.marker = marker


def ref(*parts: str) -> Expr:
    """Build a traversal expression: ``ref("module", "network", "vpc_id")``."""
    return Expr(".".join(parts))


def call(name: str, *args: Any) -> Call:
    return Call(name, *args)


def heredoc(text: str, marker: str = "EOT") -> Heredoc:
    return Heredoc(text, marker)


def quote(value: str) -> str:
    """Quote a string literal; ``${...}`` interpolations are left intact."""
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def _key(name: str) -> str:
    return name if _BARE_KEY.match(name) else quote(name)


def hcl_value(value: Any, indent: int = 0) -> str:
    """Render a Python value as an HCL expression.

    Mappings become object literals, sequences become tuples, ``Expr``
    passes through untouched.  *indent* is the nesting level of the line the
    value starts on.

    Raises:
        TypeError: For values with no HCL representation.
    """
    pad = _INDENT * indent
    if isinstance(value, Expr):
        return str(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return quote(value)
    if isinstance(value, Call):
        args = ", ".join(hcl_value(arg, indent) for arg in value.args)
        return f"{value.name}({args})"
    if isinstance(value, Heredoc):
        inner = _INDENT * (indent + 1)
        body = "\n".join(f"{inner}{line}" if line else "" for line in value.text.split("\n"))
        return f"<<-{value.marker}\n{body}\n{pad}{value.marker}"
    if isinstance(value, (list, tuple)):
        if not value:
            return "[]"
        items = [hcl_value(item, indent + 1) for item in value]
        if all("\n" not in item for item in items) and sum(len(i) for i in items) < 60:
            return "[" + ", ".join(items) + "]"
        inner = _INDENT * (indent + 1)
        return "[\n" + ",\n".join(f"{inner}{item}" for item in items) + f",\n{pad}]"
    if isinstance(value, dict):
        if not value:
            return "{}"
        lines = _render_attributes(
            [(str(k), v) for k, v in value.items()], indent + 1
        )
        return "{\n" + "\n".join(lines) + f"\n{pad}}}"
    raise TypeError(f"Cannot render {type(value).__name__} as HCL: {value!r}")


def _render_attributes(pairs: list[tuple[str, Any]], indent: int) -> list[str]:
    """Render ``name = value`` lines with ``=`` aligned like ``terraform fmt``."""
    pad = _INDENT * indent
    width = max(len(_key(name)) for name, _ in pairs)
    return [
        f"{pad}{_key(name).ljust(width)} = {hcl_value(value, indent)}"
        for name, value in pairs
    ]


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------


class _Comment:
    def __init__(self, text: str) -> None:
        self.text = text


class _Blank:
    pass


class Block:
    """An HCL block: ``type "label" ... { body }``.

    Methods return the block itself (or the new child for :meth:`block`) so
    bodies can be built fluently.
    """

    def __init__(self, block_type: str, *labels: str) -> None:
        self.block_type = block_type
        self.labels = labels
        self.items: list[Any] = []

    def attribute(self, name: str, value: Any) -> Block:
        self.items.append((name, value))
        return self

    def attributes(self, **values: Any) -> Block:
        for name, value in values.items():
            self.attribute(name, value)
        return self

    def block(self, block_type: str, *labels: str) -> Block:
        """Append and return a nested block."""
        child = Block(block_type, *labels)
        self.items.append(child)
        return child

    def add(self, child: Block) -> Block:
        self.items.append(child)
        return self

    def comment(self, text: str) -> Block:
        self.items.append(_Comment(text))
        return self

    def blank(self) -> Block:
        self.items.append(_Blank())
        return self

    def header(self) -> str:
        labels = "".join(f" {quote(label)}" for label in self.labels)
        return f"{self.block_type}{labels}"

    def render(self, indent: int = 0) -> str:
        pad = _INDENT * indent
        if not self.items:
            return f"{pad}{self.header()} {{}}"
        body = _render_items(self.items, indent + 1)
        return f"{pad}{self.header()} {{\n" + "\n".join(body) + f"\n{pad}}}"


def _render_items(items: list[Any], indent: int) -> list[str]:
    lines: list[str] = []
    run: list[tuple[str, Any]] = []
    previous = ""

    def flush() -> None:
        if run:
            lines.extend(_render_attributes(list(run), indent))
            run.clear()

    for item in items:
        if isinstance(item, tuple):
            if previous == "block":
                lines.append("")
            run.append(item)
            previous = "attribute"
            continue
        flush()
        if isinstance(item, Block):
            if previous in ("attribute", "block"):
                lines.append("")
            lines.append(item.render(indent))
            previous = "block"
        elif isinstance(item, _Comment):
            if previous == "block":
                lines.append("")
            lines.append(f"{_INDENT * indent}# {item.text}")
            previous = "comment"
        elif isinstance(item, _Blank):
            lines.append("")
            previous = "blank"
    flush()
    return lines


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class HclDocument:
    """A whole ``.tf`` / ``.tfvars`` file.

    Top-level blocks are separated by one blank line; top-level attributes
    (as in ``.tfvars`` files) are aligned as a group.
    """

    def __init__(self) -> None:
        self.items: list[Any] = []

    def block(self, block_type: str, *labels: str) -> Block:
        child = Block(block_type, *labels)
        self.items.append(child)
        return child

    def add(self, child: Block) -> HclDocument:
        self.items.append(child)
        return self

    def attribute(self, name: str, value: Any) -> HclDocument:
        self.items.append((name, value))
        return self

    def comment(self, text: str) -> HclDocument:
        self.items.append(_Comment(text))
        return self

    def blank(self) -> HclDocument:
        self.items.append(_Blank())
        return self

    def render(self) -> str:
        lines = _render_items(self.items, 0)
        return "\n".join(lines).strip("\n") + "\n"
