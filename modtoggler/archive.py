"""Module archive reader: identity header (module.yaml) and static type table.

Nothing inside an archive is ever imported or executed. The identity header is
read on its own for cheap filtering; the type table comes from parsing every
*.py member with ast.
"""

import ast
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from modtoggler.errors import ArchiveError
from modtoggler.sdk import IDENTITY_DECORATOR, MARKER_NAME

HEADER_NAME = "module.yaml"

_ROOT_TYPE = "object"
_ABSTRACT_BASES = frozenset({"ABC"})
_ABSTRACT_METACLASSES = frozenset({"ABCMeta"})
_ABSTRACT_DECORATORS = frozenset({"abstractmethod"})


class IdentityHeader(BaseModel):
    """module.yaml: lightweight identity of an archive."""

    name: str | None = None
    version: str | None = None
    description: str = ""
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("name", "version", mode="before")
    @classmethod
    def _scalar_to_str(cls, value: Any) -> Any:
        # YAML reads "version: 1.0" as a float
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("metadata", mode="before")
    @classmethod
    def _stringify_metadata(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(k): "" if v is None else str(v) for k, v in value.items()}
        return value


@dataclass(frozen=True)
class DeclaredIdentity:
    """Literal arguments of @module_info (or module_name/module_version class attributes)."""

    name: str | None = None
    version: str | None = None


@dataclass(frozen=True)
class TypeInfo:
    """Statically parsed class declaration."""

    name: str
    member: str
    bases: tuple[str, ...]
    abstract: bool
    identity: DeclaredIdentity | None = None


def read_identity(path: Path) -> IdentityHeader:
    """Read only module.yaml from the archive. Missing header yields an empty identity."""
    try:
        with zipfile.ZipFile(path) as zf:
            try:
                raw = zf.read(HEADER_NAME)
            except KeyError:
                return IdentityHeader()
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveError(f"Cannot open module archive {path}: {e}") from e
    try:
        data = yaml.safe_load(raw.decode("utf-8"))
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        raise ArchiveError(f"Invalid {HEADER_NAME} in {path}: {e}") from e
    if data is None:
        return IdentityHeader()
    if not isinstance(data, dict):
        raise ArchiveError(f"{HEADER_NAME} must be a YAML object: {path}")
    try:
        return IdentityHeader.model_validate(data)
    except ValidationError as e:
        raise ArchiveError(f"Invalid {HEADER_NAME} in {path}: {e}") from e


def read_type_table(path: Path) -> list[TypeInfo]:
    """Parse every Python member of the archive; classes in archive and declaration order."""
    types: list[TypeInfo] = []
    with zipfile.ZipFile(path) as zf:
        for info in zf.infolist():
            if info.is_dir() or not info.filename.endswith(".py"):
                continue
            source = zf.read(info).decode("utf-8")
            tree = ast.parse(source, filename=info.filename)
            types.extend(_collect_types(tree.body, info.filename))
    return types


def find_qualifying_type(types: list[TypeInfo], marker: str = MARKER_NAME) -> TypeInfo | None:
    """First concrete class that reaches the marker base, or None."""
    by_name: dict[str, TypeInfo] = {}
    for t in types:
        by_name.setdefault(t.name, t)
    for t in types:
        if t.abstract or t.name == marker:
            continue
        if _reaches_marker(t, by_name, marker):
            return t
    return None


def _reaches_marker(t: TypeInfo, by_name: dict[str, TypeInfo], marker: str) -> bool:
    """Walk declared bases until the marker, object, or a name not defined in the archive."""
    pending = list(t.bases)
    seen: set[str] = {t.name}
    while pending:
        base = pending.pop(0)
        if base == marker:
            return True
        if base == _ROOT_TYPE or base in seen:
            continue
        seen.add(base)
        parent = by_name.get(base)
        if parent is not None:
            pending.extend(parent.bases)
    return False


def _collect_types(body: list[ast.stmt], member: str) -> Iterator[TypeInfo]:
    for node in body:
        if not isinstance(node, ast.ClassDef):
            continue
        yield TypeInfo(
            name=node.name,
            member=member,
            bases=tuple(b for b in (_expr_name(e) for e in node.bases) if b),
            abstract=_is_abstract(node),
            identity=_declared_identity(node),
        )
        yield from _collect_types(node.body, member)


def _expr_name(expr: ast.expr) -> str | None:
    """Trailing name of a base/decorator expression: pkg.ModulePlugin -> ModulePlugin."""
    if isinstance(expr, ast.Name):
        return expr.id
    if isinstance(expr, ast.Attribute):
        return expr.attr
    if isinstance(expr, ast.Subscript):
        return _expr_name(expr.value)
    if isinstance(expr, ast.Call):
        return _expr_name(expr.func)
    return None


def _is_abstract(node: ast.ClassDef) -> bool:
    if any(_expr_name(b) in _ABSTRACT_BASES for b in node.bases):
        return True
    for kw in node.keywords:
        if kw.arg == "metaclass" and _expr_name(kw.value) in _ABSTRACT_METACLASSES:
            return True
    for item in node.body:
        if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
            if any(_expr_name(d) in _ABSTRACT_DECORATORS for d in item.decorator_list):
                return True
    return False


def _literal_str(expr: ast.expr | None) -> str | None:
    if isinstance(expr, ast.Constant) and isinstance(expr.value, (str, int, float)):
        if isinstance(expr.value, bool):
            return None
        return str(expr.value)
    return None


def _declared_identity(node: ast.ClassDef) -> DeclaredIdentity | None:
    for dec in node.decorator_list:
        if not isinstance(dec, ast.Call) or _expr_name(dec.func) != IDENTITY_DECORATOR:
            continue
        args = list(dec.args)
        name = _literal_str(args[0]) if args else None
        version = _literal_str(args[1]) if len(args) > 1 else None
        for kw in dec.keywords:
            if kw.arg == "name":
                name = _literal_str(kw.value)
            elif kw.arg == "version":
                version = _literal_str(kw.value)
        return DeclaredIdentity(name=name, version=version)

    attrs: dict[str, str | None] = {}
    for item in node.body:
        if isinstance(item, ast.Assign) and len(item.targets) == 1:
            target, value = item.targets[0], item.value
        elif isinstance(item, ast.AnnAssign) and item.value is not None:
            target, value = item.target, item.value
        else:
            continue
        if isinstance(target, ast.Name) and target.id in ("module_name", "module_version"):
            attrs[target.id] = _literal_str(value)
    if not attrs:
        return None
    return DeclaredIdentity(name=attrs.get("module_name"), version=attrs.get("module_version"))
