from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Dict, Iterator

from atpack.errors import PackError
from atpack.model.device import Pack
from atpack.pack import load_pack
from atpack.utils.logger import get_logger

log = get_logger(__name__)

DOCUMENT_SUFFIXES = (".atdf", ".pic")


class DocumentFiles(Mapping[str, bytes]):
    """Per-device documents below a pack directory, keyed by relative path.

    Only the file list is taken up front; contents are read on lookup.
    """

    def __init__(self, root: Path):
        self.root = root
        self._paths: Dict[str, Path] = {
            path.relative_to(root).as_posix(): path
            for path in sorted(root.rglob("*"))
            if path.is_file() and path.suffix.lower() in DOCUMENT_SUFFIXES
        }

    def __getitem__(self, key: str) -> bytes:
        path = self._paths[key]
        log.debug("reading %s", key)
        return path.read_bytes()

    def __iter__(self) -> Iterator[str]:
        return iter(self._paths)

    def __len__(self) -> int:
        return len(self._paths)


def read_documents(root: Path) -> DocumentFiles:
    return DocumentFiles(root)


def load_pack_dir(path: Path) -> Pack:
    """Load an unpacked pack: one .pdsc at the top plus its per-device documents."""
    if not path.is_dir():
        raise PackError(f"not a directory: {path}", details={"path": str(path)})

    manifests = sorted(path.glob("*.pdsc"))
    if not manifests:
        raise PackError(f"no .pdsc manifest in {path}", details={"path": str(path)})
    if len(manifests) > 1:
        log.warning("several manifests in %s, using %s", path, manifests[0].name)

    docs = read_documents(path)
    log.info("Manifest: %s (%d device document(s))", manifests[0].name, len(docs))
    return load_pack(manifests[0].read_bytes(), docs, source=manifests[0].name)
