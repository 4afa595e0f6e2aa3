# artifacts.py
from __future__ import annotations

import hashlib
import json
import os
import tarfile
import time
from pathlib import Path
from typing import Dict, Iterable, List

from .errors import ArtifactNotFound

# ---------------------------------------------------------------------
# Named artifact store
# ---------------------------------------------------------------------
# Artifacts are handed between an upstream producer and an invocation by name:
#   binary:  <prefix>-<arch>-<sha>   (written by the build, read here)
#   logs:    <prefix>-<arch>         (written here, read by whoever inspects the run)
#
# Layout:
#   root/
#     <name>/
#       artifact.tar.gz
#       manifest.json
#
# Publishing the same name again replaces the previous artifact.
# ---------------------------------------------------------------------

ARCHIVE_NAME = "artifact.tar.gz"
MANIFEST_NAME = "manifest.json"


def _sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        while True:
            chunk = f.read(1024 * 1024)
            if not chunk:
                break
            h.update(chunk)
    return h.hexdigest()


def _relpath(p: Path, root: Path) -> str:
    return str(p.relative_to(root)).replace("\\", "/")


def _is_hidden(rel: str) -> bool:
    return any(part.startswith(".") for part in rel.split("/"))


def _iter_files_under(root: Path) -> Iterable[Path]:
    # deterministic traversal
    for p in sorted(root.rglob("*")):
        if p.is_file():
            yield p


def _validate_name(name: str) -> str:
    if not name or name in (".", "..") or "/" in name or "\\" in name:
        raise ValueError(f"Invalid artifact name: {name!r}")
    return name


class ArtifactStore:
    """File-based store of named artifacts."""

    def __init__(self, root: str | Path):
        self.root = Path(root).expanduser().resolve()

    def _dir(self, name: str) -> Path:
        return self.root / _validate_name(name)

    def archive_path(self, name: str) -> Path:
        return self._dir(name) / ARCHIVE_NAME

    def manifest_path(self, name: str) -> Path:
        return self._dir(name) / MANIFEST_NAME

    def exists(self, name: str) -> bool:
        return self.archive_path(name).is_file()

    def names(self) -> List[str]:
        if not self.root.is_dir():
            return []
        return sorted(d.name for d in self.root.iterdir() if (d / ARCHIVE_NAME).is_file())

    def manifest(self, name: str) -> Dict:
        path = self.manifest_path(name)
        if not path.is_file():
            raise ArtifactNotFound(name, str(self.root))
        return json.loads(path.read_text(encoding="utf-8"))

    def collect(self, source: str | Path, *, include_hidden: bool = False) -> List[Path]:
        """Files under source that would be published (single files are allowed)."""
        src = Path(source).expanduser().resolve()
        if src.is_file():
            return [src]
        if not src.is_dir():
            return []
        return [
            f for f in _iter_files_under(src)
            if include_hidden or not _is_hidden(_relpath(f, src))
        ]

    def publish(self, name: str, source: str | Path, *, include_hidden: bool = False) -> Dict:
        """
        Archive the files under `source` as artifact `name`.
        Returns the manifest. Dot-prefixed files/dirs are skipped unless include_hidden.
        """
        src = Path(source).expanduser().resolve()
        files = self.collect(src, include_hidden=include_hidden)
        base = src.parent if src.is_file() else src

        d = self._dir(name)
        d.mkdir(parents=True, exist_ok=True)
        art = d / ARCHIVE_NAME
        tmp = d / (ARCHIVE_NAME + ".tmp")

        entries = []
        try:
            # Build tar.gz in tmp, then atomic rename
            with tarfile.open(str(tmp), mode="w:gz") as tar:
                for f in files:
                    rel = _relpath(f, base)
                    tar.add(str(f), arcname=rel, recursive=False)
                    entries.append({"path": rel, "size": f.stat().st_size})
            tmp.replace(art)
        finally:
            if tmp.exists():
                tmp.unlink()

        manifest = {
            "name": name,
            "source": str(src),
            "include_hidden": include_hidden,
            "files": entries,
            "size": sum(e["size"] for e in entries),
            "sha256": _sha256_file(art),
            "created_at_unix": int(time.time()),
        }
        (d / MANIFEST_NAME).write_text(
            json.dumps(manifest, sort_keys=True, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        return manifest

    def retrieve(self, name: str, dest: str | Path) -> List[str]:
        """Extract artifact `name` into dest. Returns the extracted relative paths."""
        art = self.archive_path(name)
        if not art.is_file():
            raise ArtifactNotFound(name, str(self.root))

        target = Path(dest).expanduser().resolve()
        target.mkdir(parents=True, exist_ok=True)

        extracted: List[str] = []
        with tarfile.open(str(art), mode="r:gz") as tar:
            members = tar.getmembers()
            for m in members:
                out = (target / m.name).resolve()
                if out != target and target not in out.parents:
                    raise ValueError(f"Artifact {name!r} member escapes destination: {m.name}")
                if not (m.isfile() or m.isdir()):
                    raise ValueError(f"Artifact {name!r} contains unsupported member: {m.name}")
            for m in members:
                if m.isdir():
                    (target / m.name).mkdir(parents=True, exist_ok=True)
                    continue
                out = target / m.name
                out.parent.mkdir(parents=True, exist_ok=True)
                fobj = tar.extractfile(m)
                with out.open("wb") as fh:
                    fh.write(fobj.read() if fobj is not None else b"")
                os.chmod(out, m.mode & 0o777)
                extracted.append(m.name)
        return extracted

