"""Read a local document with optional YAML front matter and bound its size."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

import frontmatter

logger = logging.getLogger(__name__)


@dataclass
class Document:
    text: str
    source: str
    title: str = ""
    metadata: dict = field(default_factory=dict)
    truncated: bool = False


def truncate(text: str, max_chars: int) -> tuple[str, bool]:
    if max_chars <= 0 or len(text) <= max_chars:
        return text, False
    return text[:max_chars], True


def load_document(file_path: Path, max_chars: int) -> Document:
    """Parse a text/markdown file; front matter keys (title, topic, rounds) land in metadata.

    The body is cut to ``max_chars`` characters.
    """
    post = frontmatter.load(str(file_path))
    text, truncated = truncate(post.content.strip(), max_chars)
    if truncated:
        logger.info("Document %s truncated to %d characters", file_path.name, max_chars)
    metadata = dict(post.metadata)
    return Document(
        text=text,
        source=str(file_path),
        title=str(metadata.get("title", file_path.stem)),
        metadata=metadata,
        truncated=truncated,
    )
