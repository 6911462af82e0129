from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from docmerge.core.errors import NotFound, StorageFailure
from docmerge.core.logger import get_logger

from .base import FileRef, FolderRef, IDocumentStore, TemplateInfo

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def safe_filename(name: str, fallback: str = "document") -> str:
    """Replace characters that cannot appear in a file name."""

    cleaned = _UNSAFE_CHARS.sub("_", name).strip().rstrip(". ")
    return cleaned or fallback


class LocalDocumentStore(IDocumentStore):
    """Filesystem workspace: templates under ``templates/``, output under ``out/``.

    Template ids and folder ids are POSIX paths relative to those directories.
    """

    def __init__(self, root: Path, logger: logging.Logger | None = None) -> None:
        self.root = Path(root).expanduser().resolve()
        self.templates_dir = self.root / "templates"
        self.out_dir = self.root / "out"
        self.logger = logger or get_logger()

    @staticmethod
    def _inside(base: Path, relative: str) -> Path:
        target = (base / relative).resolve()
        if target != base.resolve() and base.resolve() not in target.parents:
            raise NotFound(f"path escapes store: {relative}")
        return target

    def fetch_template(self, template_id: str) -> bytes:
        path = self._inside(self.templates_dir, template_id)
        if not path.is_file():
            raise NotFound(f"template not found: {template_id}")
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageFailure(f"cannot read template {template_id}: {e}") from e

    def list_templates(self) -> list[TemplateInfo]:
        if not self.templates_dir.exists():
            return []
        return [
            TemplateInfo(
                id=p.relative_to(self.templates_dir).as_posix(),
                name=p.name,
                size=p.stat().st_size,
            )
            for p in sorted(self.templates_dir.rglob("*.pdf"))
            if p.is_file()
        ]

    def _folder_path(self, folder_id: str | None) -> Path:
        if not folder_id:
            return self.out_dir
        try:
            path = self._inside(self.out_dir, folder_id)
        except NotFound as e:
            raise StorageFailure(str(e)) from e
        if not path.is_dir():
            raise StorageFailure(f"output folder not found: {folder_id}")
        return path

    def persist(self, folder_id: str | None, filename: str, data: bytes) -> FileRef:
        try:
            self.out_dir.mkdir(parents=True, exist_ok=True)
            folder = self._folder_path(folder_id)
            target = folder / safe_filename(filename)
            tmp_path = target.with_name(target.name + ".tmp")
            tmp_path.write_bytes(data)
            os.replace(tmp_path, target)
        except StorageFailure:
            raise
        except OSError as e:
            raise StorageFailure(f"cannot write {filename}: {e}") from e
        ref = FileRef(
            id=target.relative_to(self.out_dir).as_posix(),
            name=target.name,
            url=target.resolve().as_uri(),
        )
        self.logger.info("Stored %s (%d bytes)", ref.id, len(data))
        return ref

    def read(self, file_ref: FileRef) -> bytes:
        try:
            path = self._inside(self.out_dir, file_ref.id)
            return path.read_bytes()
        except NotFound as e:
            raise StorageFailure(str(e)) from e
        except OSError as e:
            raise StorageFailure(f"cannot read {file_ref.id}: {e}") from e

    def list_folders(self) -> list[FolderRef]:
        if not self.out_dir.exists():
            return []
        folders: list[FolderRef] = []
        for p in sorted(self.out_dir.rglob("*")):
            if not p.is_dir():
                continue
            rel = p.relative_to(self.out_dir)
            parent = rel.parent.as_posix()
            folders.append(FolderRef(id=rel.as_posix(), name=p.name, parent_id=None if parent == "." else parent))
        return folders

    def create_folder(self, name: str, parent_id: str | None = None) -> FolderRef:
        self.out_dir.mkdir(parents=True, exist_ok=True)
        parent = self._folder_path(parent_id)
        folder = parent / safe_filename(name, fallback="folder")
        try:
            folder.mkdir(exist_ok=True)
        except OSError as e:
            raise StorageFailure(f"cannot create folder {name}: {e}") from e
        return FolderRef(
            id=folder.relative_to(self.out_dir).as_posix(),
            name=folder.name,
            parent_id=parent_id or None,
        )
