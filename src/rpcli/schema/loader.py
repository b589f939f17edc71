"""Load schema and app options documents from a URL, local file, or stdin.

This module handles all I/O for fetching the two static inputs of the
command generator and converting them into validated models:

* **Schema documents** -- services, messages, and enums
  (:class:`~rpcli.models.SchemaDocument`), registered into a
  :class:`~rpcli.schema.registry.SchemaRegistry`.
* **App options documents** -- the command descriptor tree per module
  (:class:`~rpcli.models.AppOptions`).

Both JSON and YAML are supported with automatic format detection.

The public functions are:

* :func:`load_document` -- Load and parse a raw document from any source.
* :func:`load_schema` -- Load a schema document into a registry.
* :func:`load_app_options` -- Load an app options document.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import httpx
import yaml
from pydantic import ValidationError

from rpcli.exceptions import DescriptorError
from rpcli.models import AppOptions, SchemaDocument
from rpcli.schema.registry import SchemaRegistry


def load_document(source: str) -> dict[str, Any]:
    """Load a JSON or YAML document from URL, file path, or stdin ('-').

    Auto-detects format from content/extension.

    Args:
        source: A URL (http/https), file path, or '-' for stdin.

    Returns:
        The parsed document as a dictionary.

    Raises:
        DescriptorError: If the source cannot be loaded or parsed.
    """
    if source == "-":
        return _load_from_stdin()
    elif source.startswith(("http://", "https://")):
        return _load_from_url(source)
    else:
        return _load_from_file(source)


def load_schema(source: str, registry: SchemaRegistry) -> SchemaDocument:
    """Load the schema document at *source* and register it in *registry*.

    Args:
        source: A URL, file path, or '-' for stdin.
        registry: The registry that receives the document's types.

    Returns:
        The validated :class:`~rpcli.models.SchemaDocument`.

    Raises:
        DescriptorError: If the document cannot be loaded, fails validation,
            or refers to unknown types.
    """
    raw = load_document(source)
    try:
        document = SchemaDocument.model_validate(raw)
    except ValidationError as exc:
        raise DescriptorError(f"Invalid schema document {source}: {exc}") from exc
    registry.register_document(document)
    return document


def load_app_options(source: str) -> AppOptions:
    """Load the app options document (module command descriptors) at *source*.

    Raises:
        DescriptorError: If the document cannot be loaded or fails validation.
    """
    raw = load_document(source)
    try:
        return AppOptions.model_validate(raw)
    except ValidationError as exc:
        raise DescriptorError(f"Invalid app options document {source}: {exc}") from exc


def _load_from_stdin() -> dict[str, Any]:
    """Read a document from stdin, trying JSON then YAML."""
    try:
        content = sys.stdin.read()
    except Exception as exc:
        raise DescriptorError(f"Failed to read from stdin: {exc}") from exc

    if not content.strip():
        raise DescriptorError("No input received from stdin")

    return _parse_content(content, hint="stdin")


def _load_from_url(url: str) -> dict[str, Any]:
    """Fetch a document from URL. Supports JSON and YAML responses."""
    try:
        response = httpx.get(url, timeout=30.0, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise DescriptorError(
            f"HTTP {exc.response.status_code} fetching document from {url}"
        ) from exc
    except httpx.RequestError as exc:
        raise DescriptorError(f"Failed to fetch document from {url}: {exc}") from exc

    content = response.text
    content_type = response.headers.get("content-type", "")
    hint = ""
    if "json" in content_type:
        hint = "json"
    elif "yaml" in content_type or "yml" in content_type:
        hint = "yaml"

    return _parse_content(content, hint=hint)


def _load_from_file(path: str) -> dict[str, Any]:
    """Load a document from a local .json, .yaml, or .yml file."""
    file_path = Path(path).expanduser()
    if not file_path.is_file():
        raise DescriptorError(f"Document not found: {path}")

    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DescriptorError(f"Failed to read {path}: {exc}") from exc

    if not content.strip():
        raise DescriptorError(f"Document is empty: {path}")

    suffix = file_path.suffix.lower()
    hint = ""
    if suffix == ".json":
        hint = "json"
    elif suffix in (".yaml", ".yml"):
        hint = "yaml"

    return _parse_content(content, hint=hint)


def _parse_content(content: str, hint: str = "") -> dict[str, Any]:
    """Parse content as JSON or YAML.

    Tries JSON first (unless hint is 'yaml'), then falls back to YAML.

    Raises:
        DescriptorError: If the content cannot be parsed as either format,
            or is not a mapping at the top level.
    """
    json_error: Exception | None = None
    yaml_error: Exception | None = None

    if hint != "yaml":
        try:
            result = json.loads(content)
            if not isinstance(result, dict):
                raise DescriptorError(
                    "Document must be a JSON/YAML object (got "
                    f"{type(result).__name__})"
                )
            return result
        except json.JSONDecodeError as exc:
            json_error = exc
            if hint == "json":
                raise DescriptorError(f"Invalid JSON: {exc}") from exc

    try:
        result = yaml.safe_load(content)
        if not isinstance(result, dict):
            raise DescriptorError(
                "Document must be a JSON/YAML object (got "
                f"{type(result).__name__ if result is not None else 'empty document'})"
            )
        return result
    except yaml.YAMLError as exc:
        yaml_error = exc

    msg = "Failed to parse document as JSON or YAML"
    if json_error:
        msg += f"\n  JSON error: {json_error}"
    if yaml_error:
        msg += f"\n  YAML error: {yaml_error}"
    raise DescriptorError(msg)
