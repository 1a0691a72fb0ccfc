from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional

from rag_core.models import LoadedDocument

_log = logging.getLogger(__name__)

MARKDOWN_SUFFIX = ".md"


class VaultLoader:
    """Load Markdown notes from a vault directory, skipping hidden directories."""

    def __init__(self, root: str | Path, logger: Optional[logging.Logger] = None) -> None:
        self.root = Path(root)
        self._log = logger or _log

    def load_documents(self) -> List[LoadedDocument]:
        if not self.root.exists():
            self._log.error("Vault directory does not exist: %s", self.root)
            return []
        if not self.root.is_dir():
            self._log.error("Vault path is not a directory: %s", self.root)
            return []

        self._log.info("Scanning vault %s", self.root)
        documents: list[LoadedDocument] = []
        for path in self._iter_markdown(self.root):
            try:
                documents.append(self._load(path))
            except (OSError, UnicodeDecodeError) as exc:
                self._log.error("Failed to load %s: %s", path, exc, exc_info=True)
                continue
            self._log.debug("Loaded %s", path)

        self._log.info("Found %d documents", len(documents))
        return documents

    def _iter_markdown(self, directory: Path) -> Iterable[Path]:
        try:
            entries = sorted(directory.iterdir())
        except OSError as exc:
            self._log.error("Cannot list directory %s, skipping it: %s", directory, exc)
            return

        for entry in entries:
            if entry.is_dir():
                if not entry.name.startswith("."):
                    yield from self._iter_markdown(entry)
            elif entry.is_file() and entry.suffix.lower() == MARKDOWN_SUFFIX:
                yield entry

    def _load(self, path: Path) -> LoadedDocument:
        content = path.read_text(encoding="utf-8")
        return LoadedDocument(
            path=str(path.resolve()),
            content=content,
            metadata=self._extract_metadata(path),
        )

    def _extract_metadata(self, path: Path) -> dict[str, str]:
        metadata = {"fileName": path.name}
        try:
            stat = path.stat()
        except OSError as exc:
            self._log.warning("Could not read file attributes for %s: %s", path, exc)
            return metadata

        metadata["fileSize"] = str(stat.st_size)
        metadata["modifiedAt"] = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat()
        metadata["relativePath"] = path.relative_to(self.root).as_posix()
        return metadata


__all__ = ["VaultLoader", "MARKDOWN_SUFFIX"]
