"""Machine-readable description of the atlasctl command tree.

``atlasctl --describe`` prints this document so scripts and agents can
discover commands, arguments, examples and output contracts without
scraping ``--help``.
"""

from __future__ import annotations

from typing import Any, Iterator

from . import __version__

DESCRIBE_SPEC_VERSION = "2026-02-07"

_COMMENT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "title": {"type": "string"},
        "author": {"type": "string"},
        "created": {"type": "string"},
        "updated": {"type": "string"},
        "bodyHtml": {"type": "string"},
        "inlineContext": {
            "type": "object",
            "properties": {
                "textSelection": {"type": "string"},
                "markerRef": {"type": "string"},
                "resolved": {"type": "boolean"},
            },
        },
        "children": {"type": "array"},
    },
}

PAGE_EXPORT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["page", "comments", "meta"],
    "properties": {
        "page": {
            "type": "object",
            "properties": {
                "id": {"type": "string"},
                "title": {"type": "string"},
                "space": {"type": "string"},
                "url": {"type": "string"},
                "author": {"type": "string"},
                "created": {"type": "string"},
                "lastUpdated": {"type": "string"},
                "version": {"type": "integer"},
                "labels": {"type": "array", "items": {"type": "string"}},
                "bodyHtml": {"type": "string"},
            },
        },
        "comments": {"type": "array", "items": _COMMENT_SCHEMA},
        "meta": {
            "type": "object",
            "properties": {
                "fetchedAt": {"type": "string"},
                "totalComments": {"type": "integer"},
            },
        },
    },
}

COMMAND_CONTRACTS: dict[str, dict[str, Any]] = {
    "config set": {
        "examples": [
            {"description": "Interactive guided setup", "command": "atlasctl config set"},
            {
                "description": "Set site",
                "command": "atlasctl config set site your-domain.atlassian.net",
            },
            {"description": "Set API key", "command": "atlasctl config set apikey your-token"},
        ],
    },
    "config get": {
        "stdout": {
            "contentType": "text/plain",
            "description": "The config value. apikey always prints ***hidden***.",
        },
        "examples": [
            {
                "description": "Read configured site",
                "command": "atlasctl config get site",
                "output": "your-domain.atlassian.net",
            },
        ],
    },
    "config show": {
        "stdout": {
            "contentType": "application/json",
            "description": "All config keys with apikey masked",
        },
        "examples": [{"description": "Display current config", "command": "atlasctl config show"}],
    },
    "confluence page get": {
        "argTypes": {"output": "path"},
        "stdout": {
            "contentType": "application/json",
            "description": "Page metadata, recursive comment tree, and fetch metadata",
            "schema": PAGE_EXPORT_SCHEMA,
        },
        "examples": [
            {
                "description": "Fetch a page by ID",
                "command": "atlasctl confluence page get 12345 --pretty",
            },
            {
                "description": "Fetch by URL, save to file",
                "command": (
                    "atlasctl confluence page get "
                    "https://your-domain.atlassian.net/wiki/spaces/ENG/pages/12345 --output page.json"
                ),
            },
        ],
    },
}


_PARAM_TYPE_NAMES = {
    "integer": "integer",
    "float": "number",
    "path": "path",
    "boolean": "boolean",
}


def iter_leaf_commands(group: Any, prefix: tuple[str, ...] = ()) -> Iterator[tuple[str, Any]]:
    """Yield ``(space-joined path, command)`` for every command below ``group``.

    Groups are recognized by their ``commands`` mapping, which works for the
    command classes typer builds whichever click implementation backs them.
    """

    for name, command in group.commands.items():
        path = (*prefix, name)
        if isinstance(getattr(command, "commands", None), dict):
            yield from iter_leaf_commands(command, path)
        else:
            yield " ".join(path), command


def _is_option(param: Any) -> bool:
    return getattr(param, "param_type_name", "") == "option"


def _param_type(param: Any, arg_types: dict[str, str]) -> str:
    if param.name in arg_types:
        return arg_types[param.name]
    if _is_option(param) and getattr(param, "is_flag", False):
        return "boolean"
    type_name = getattr(param.type, "name", "")
    return _PARAM_TYPE_NAMES.get(type_name, "string")


def _describe_param(param: Any, arg_types: dict[str, str]) -> dict[str, Any]:
    if _is_option(param):
        long_names = [opt for opt in param.opts if opt.startswith("--")]
        name = long_names[0] if long_names else param.opts[0]
    else:
        name = (param.name or "").replace("_", "-")
    return {
        "name": name,
        "type": _param_type(param, arg_types),
        "required": bool(param.required),
        "description": getattr(param, "help", None) or "",
    }


def _first_line(text: str | None) -> str:
    lines = (text or "").strip().splitlines()
    return lines[0].strip() if lines else ""


def build_description(root: Any) -> dict[str, Any]:
    commands: list[dict[str, Any]] = []
    for name, command in iter_leaf_commands(root):
        contract = COMMAND_CONTRACTS.get(name, {})
        arg_types = contract.get("argTypes", {})
        entry: dict[str, Any] = {
            "name": name,
            "description": _first_line(command.help),
            "args": [_describe_param(param, arg_types) for param in command.params],
            "examples": contract.get("examples", []),
        }
        if "stdout" in contract:
            entry["stdout"] = contract["stdout"]
        commands.append(entry)

    return {
        "specVersion": DESCRIBE_SPEC_VERSION,
        "name": "atlasctl",
        "version": __version__,
        "description": _first_line(root.help),
        "commands": commands,
    }
