"""On-disk naming convention: module key <-> active/inactive file paths."""

from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from modtoggler.errors import InvalidModuleKey


@dataclass(frozen=True)
class ModuleLayout:
    """Modules directory plus the suffixes that encode enabled state.

    Active:   <modules_dir>/<key><extension>           (Alpha.pkg)
    Inactive: <modules_dir>/<key><extension><suffix>   (Alpha.pkg.disabled)
    """

    modules_dir: Path
    extension: str = ".pkg"
    disabled_suffix: str = ".disabled"

    @classmethod
    def for_root(
        cls,
        root_dir: Path,
        directory: str = "modules",
        extension: str = ".pkg",
        disabled_suffix: str = ".disabled",
    ) -> "ModuleLayout":
        return cls(
            modules_dir=root_dir / directory,
            extension=extension,
            disabled_suffix=disabled_suffix,
        )

    @property
    def active_pattern(self) -> str:
        return f"*{self.extension}"

    @property
    def inactive_pattern(self) -> str:
        return f"*{self.extension}{self.disabled_suffix}"

    def is_inactive(self, path: Path) -> bool:
        return path.name.endswith(self.extension + self.disabled_suffix)

    def strip_disabled(self, path: Path) -> Path:
        """Path without the disabled suffix; unchanged for active paths."""
        if not self.is_inactive(path):
            return path
        return path.with_name(path.name[: -len(self.disabled_suffix)])

    def stem_of(self, path: Path) -> str:
        """File name without disabled suffix and extension (Beta.pkg.disabled -> Beta)."""
        name = self.strip_disabled(path).name
        if name.endswith(self.extension):
            name = name[: -len(self.extension)]
        return name

    def key_for(self, path: Path) -> str:
        """Module key: path relative to modules_dir, no extension, POSIX separators."""
        try:
            rel = self.strip_disabled(path).relative_to(self.modules_dir)
        except ValueError:
            return self.stem_of(path)
        parent = PurePosixPath(*rel.parts[:-1]) if len(rel.parts) > 1 else None
        stem = self.stem_of(path)
        return str(parent / stem) if parent else stem

    def active_path(self, key: str) -> Path:
        return self._resolve_key(key, self.extension)

    def inactive_path(self, key: str) -> Path:
        return self._resolve_key(key, self.extension + self.disabled_suffix)

    def _resolve_key(self, key: str, suffix: str) -> Path:
        key = (key or "").strip()
        if not key:
            raise InvalidModuleKey("Module key is empty")
        rel = PurePosixPath(key.replace("\\", "/"))
        if rel.is_absolute() or ".." in rel.parts:
            raise InvalidModuleKey(f"Module key escapes modules directory: {key}")
        return self.modules_dir.joinpath(*rel.parts[:-1], rel.name + suffix)
