"""Load plain-text law documents and split them into overlapping chunks."""

from __future__ import annotations

from pathlib import Path

from langchain_text_splitters import RecursiveCharacterTextSplitter
from loguru import logger


class DocumentLoader:
    """Reads every ``*.txt`` file in a directory and splits it into chunk texts.

    Chunks are at most ``chunk_size`` characters long and consecutive chunks of
    the same file share up to ``chunk_overlap`` characters, so a sentence cut
    at a boundary still appears whole in one of them.
    """

    def __init__(self, chunk_size: int = 1000, chunk_overlap: int = 200) -> None:
        self.splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
        )

    def load_directory(self, directory: Path) -> list[str]:
        """Return the flat, ordered list of chunk texts for all files in *directory*.

        Files are processed in name order. An unreadable directory yields an
        empty list (logged) so retrieval degrades to "no context".
        """
        try:
            files = sorted(p for p in directory.iterdir() if p.suffix == ".txt" and p.is_file())
        except OSError as exc:
            logger.warning("Cannot read documents directory {}: {}", directory, exc)
            return []

        chunks: list[str] = []
        for path in files:
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping unreadable document {}: {}", path.name, exc)
                continue
            pieces = self.split_text(content)
            chunks.extend(pieces)
            logger.debug("Loaded {} | {} chunks", path.name, len(pieces))

        logger.info("Loaded {} chunks from {} documents in {}", len(chunks), len(files), directory)
        return chunks

    def split_text(self, text: str) -> list[str]:
        return self.splitter.split_text(text)
