from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Optional
import collections.abc

import toml
import xmltodict
import yaml

from qeres.qeres_errors import is_error


# --------------------------
# Helpers
# --------------------------

_EXTENSIONS = {
    '.json': 'json',
    '.yaml': 'yaml',
    '.yml': 'yaml',
    '.toml': 'toml',
    '.xml': 'xml',
}


def _norm_text(data: bytes | bytearray | str, *, encoding: Optional[str] = None) -> str:
    if isinstance(data, (bytes, bytearray)):
        try:
            return data.decode(encoding or 'utf-8', errors='replace')
        except LookupError:
            # Unknown charset name in the content type
            return data.decode('utf-8', errors='replace')
    if isinstance(data, str):
        return data
    return str(data)


def _encoding_from_content_type(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    m = re.search(r'charset\s*=\s*([^\s;]+)', content_type, re.IGNORECASE)
    if m:
        return m.group(1).strip('"').strip("'")
    return None


_SCALARS = (str, int, float, bool, type(None))


def to_builtin(obj: Any) -> Any:
    """Convert results into plain JSON-like structures.

    Error values become ``{"error": message, "status": status}``,
    mapping-like objects (e.g. xmltodict's OrderedDicts) become dicts and
    any other non-scalar value is rendered with ``str``.
    """
    if is_error(obj):
        return obj.to_dict()
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [to_builtin(x) for x in obj]
    if isinstance(obj, collections.abc.Mapping):
        return {str(k): to_builtin(v) for k, v in obj.items()}
    if isinstance(obj, _SCALARS):
        return obj
    return str(obj)


def _unwrap_root(doc: Any) -> Any:
    # An XML document always has a single root element around the request
    if isinstance(doc, dict) and len(doc) == 1:
        (inner,) = doc.values()
        return {} if inner is None else inner
    return doc


def format_from_path(path: str | Path) -> Optional[str]:
    return _EXTENSIONS.get(Path(path).suffix.lower())


def detect_format(content_type: Optional[str] = None, data_hint: Optional[str] = None) -> Optional[str]:
    """
    Returns a canonical format name among: 'json', 'yaml', 'toml', 'xml'.
    Uses Content-Type first; falls back to simple data sniffing if provided.
    """
    ct = (content_type or "").lower()
    if 'json' in ct:
        return 'json'
    if 'yaml' in ct:
        return 'yaml'
    if 'toml' in ct:
        return 'toml'
    if 'xml' in ct:
        return 'xml'

    if data_hint is not None:
        s = data_hint.lstrip()
        if s.startswith('{') or s.startswith('['):
            return 'json'
        if s.startswith('<'):
            return 'xml'
        # Request documents are mappings, so anything else is read as YAML
        if s:
            return 'yaml'
    return None


# --------------------------
# Public API
# --------------------------

def deserialize(data: bytes | bytearray | str,
                *,
                content_type: Optional[str] = None,
                fmt: Optional[str] = None) -> Any:
    """
    Convert a request document (bytes/string) to native Python structures.
    Supported fmt: 'json', 'yaml', 'toml', 'xml'.
    If fmt is None, uses content_type, then sniffing.
    For XML the root element is dropped; its children are the request.
    Key order is preserved, since sibling statements run in document order.
    """
    enc = _encoding_from_content_type(content_type)
    text = _norm_text(data, encoding=enc)
    f = (fmt or detect_format(content_type, text))
    if f == 'json':
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            # Declared JSON but actually YAML-like (YAML is a superset)
            return yaml.safe_load(text)
    if f == 'yaml':
        return yaml.safe_load(text)
    if f == 'toml':
        return toml.loads(text)
    if f == 'xml':
        return _unwrap_root(to_builtin(xmltodict.parse(text)))
    raise ValueError(f"Unsupported request format: {f!r}")


def serialize(value: Any,
              *,
              fmt: str,
              pretty: bool = True,
              xml_root: str = "results") -> str:
    """
    Convert a result tree into a textual representation.
    - fmt: 'json' | 'yaml' | 'toml' | 'xml'
    - For XML the results are wrapped under {xml_root: value}
    """
    f = (fmt or '').lower()
    built = to_builtin(value)
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False)
    if f == 'toml':
        return toml.dumps(built if isinstance(built, dict) else {xml_root: built})
    if f == 'xml':
        return xmltodict.unparse({xml_root: built}, pretty=pretty)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


__all__ = [
    "deserialize",
    "serialize",
    "detect_format",
    "format_from_path",
    "to_builtin",
]
