"""
Rule tree model and its YAML/mapping form.

Rule file shape (YAML):
  type: dir|file
  rules:                           # optional, no rules means "exists with this type"
    # Directory rules:
    dirname: <name spec>           # "name", {regex: ...} or {glob: ...}
    size: <size spec>              # 100, "1MB", ">=2K", ...
    has:                           # children that must exist, in order
      <child name>: file|dir|symlink|unknown
      <child name>: { type: ..., rules: ... }
    # File rules:
    filename: <name spec>
    size: <size spec>
    subtype: compressed|text|binary
    content:                       # only with subtype: compressed
      has: ...
    # Either kind:
    and: [<rules>, ...]
    or: [<rules>, ...]
    not: <rules>
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from .errors import ParseError, SpecError
from .names import NameSpecifier, compile_name_spec
from .nodes import DIR, FILE, FILE_TYPES
from .sizes import SizeSpecifier, parse_size

SUBTYPES = ("compressed", "text", "binary")

# ---------- Data model ----------


@dataclass
class FileRule:
    filename: Optional[NameSpecifier] = None
    size: Optional[SizeSpecifier] = None
    subtype: Optional[str] = None
    content: Optional["DirRule"] = None
    and_: Optional[List["FileRule"]] = None
    or_: Optional[List["FileRule"]] = None
    not_: Optional["FileRule"] = None


@dataclass
class DirRule:
    dirname: Optional[NameSpecifier] = None
    size: Optional[SizeSpecifier] = None
    has: Optional[Dict[str, Union["FileTest", "DirTest", str]]] = None
    and_: Optional[List["DirRule"]] = None
    or_: Optional[List["DirRule"]] = None
    not_: Optional["DirRule"] = None


@dataclass
class FileTest:
    rules: Optional[FileRule] = None
    type: str = FILE


@dataclass
class DirTest:
    rules: Optional[DirRule] = None
    type: str = DIR


Test = Union[FileTest, DirTest]

# ---------- Parsing helpers ----------

_COMBINATOR_KEYS = ("and", "or", "not")
_FILE_RULE_KEYS = ("filename", "size", "subtype", "content") + _COMBINATOR_KEYS
_DIR_RULE_KEYS = ("dirname", "size", "has") + _COMBINATOR_KEYS
_CONTENT_RULE_KEYS = ("size", "has") + _COMBINATOR_KEYS


def _require_mapping(obj: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(obj, Mapping):
        raise SpecError(f"{what} must be a mapping")
    return obj


def _reject_unknown_keys(obj: Mapping[str, Any], allowed, what: str) -> None:
    unknown = [key for key in obj if key not in allowed]
    if unknown:
        raise SpecError(f"{what}: unknown field(s) {', '.join(map(str, unknown))}")


def _size(obj: Mapping[str, Any]) -> Optional[SizeSpecifier]:
    if "size" not in obj:
        return None
    value = obj["size"]
    try:
        parse_size(value)
    except ParseError as exc:
        raise SpecError(f"Field 'size': {exc}") from exc
    return value


def _rule_list(obj: Mapping[str, Any], key: str, parse) -> Optional[list]:
    if key not in obj:
        return None
    value = obj[key]
    if not isinstance(value, list):
        raise SpecError(f"Field '{key}' must be a list")
    return [parse(item) for item in value]


def _parse_file_rule(obj: Any) -> FileRule:
    if isinstance(obj, FileRule):
        return obj
    obj = _require_mapping(obj, "File rules")
    _reject_unknown_keys(obj, _FILE_RULE_KEYS, "File rules")

    subtype = obj.get("subtype")
    if subtype is not None and subtype not in SUBTYPES:
        raise SpecError(f"Unsupported subtype '{subtype}'")
    content = None
    if "content" in obj:
        if subtype != "compressed":
            raise SpecError("Field 'content' requires 'subtype: compressed'")
        content = _parse_dir_rule(obj["content"], _CONTENT_RULE_KEYS)

    return FileRule(
        filename=(
            compile_name_spec(obj["filename"], "filename")
            if "filename" in obj
            else None
        ),
        size=_size(obj),
        subtype=subtype,
        content=content,
        and_=_rule_list(obj, "and", _parse_file_rule),
        or_=_rule_list(obj, "or", _parse_file_rule),
        not_=_parse_file_rule(obj["not"]) if "not" in obj else None,
    )


def _parse_has(obj: Any) -> Dict[str, Union[FileTest, DirTest, str]]:
    obj = _require_mapping(obj, "Field 'has'")
    has: Dict[str, Union[FileTest, DirTest, str]] = {}
    for key, value in obj.items():
        key = str(key)
        if isinstance(value, str):
            if value not in FILE_TYPES:
                raise SpecError(f"Child '{key}': unknown type '{value}'")
            has[key] = value
        elif isinstance(value, (FileTest, DirTest, Mapping)):
            has[key] = parse_test(value)
        else:
            raise SpecError(f"Child '{key}' must be a type name or a test mapping")
    return has


def _parse_dir_rule(obj: Any, allowed=_DIR_RULE_KEYS) -> DirRule:
    if isinstance(obj, DirRule):
        return obj
    obj = _require_mapping(obj, "Directory rules")
    _reject_unknown_keys(obj, allowed, "Directory rules")

    def parse_nested(item: Any) -> DirRule:
        return _parse_dir_rule(item, allowed)

    return DirRule(
        dirname=(
            compile_name_spec(obj["dirname"], "dirname") if "dirname" in obj else None
        ),
        size=_size(obj),
        has=_parse_has(obj["has"]) if "has" in obj else None,
        and_=_rule_list(obj, "and", parse_nested),
        or_=_rule_list(obj, "or", parse_nested),
        not_=parse_nested(obj["not"]) if "not" in obj else None,
    )


def parse_test(obj: Any) -> Test:
    """Build a ``FileTest``/``DirTest`` from its mapping form.

    Already-built tests are returned unchanged.

    Raises:
        SpecError: If the mapping does not describe a valid test.
    """
    if isinstance(obj, (FileTest, DirTest)):
        return obj
    obj = _require_mapping(obj, "Each test")
    _reject_unknown_keys(obj, ("type", "rules"), "Test")

    t = obj.get("type")
    rules = obj.get("rules")
    if t == FILE:
        return FileTest(rules=_parse_file_rule(rules) if rules is not None else None)
    if t == DIR:
        return DirTest(rules=_parse_dir_rule(rules) if rules is not None else None)
    raise SpecError(f"Unsupported test type '{t}'")


def load_spec(path: Path) -> Test:
    """Read a YAML rule file and parse it into a test."""
    path = Path(path)
    if not path.exists() or not path.is_file():
        raise SpecError(f"Rule file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise SpecError(f"Invalid YAML: {exc}") from exc
    if data is None:
        raise SpecError("Rule file is empty")
    return parse_test(data)
