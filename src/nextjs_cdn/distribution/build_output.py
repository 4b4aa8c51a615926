"""Public directory listing for a Next.js build."""

from __future__ import annotations

from pathlib import Path

from .contracts import PublicDirEntry


def list_public_dir_entries(public_dir: Path) -> tuple[PublicDirEntry, ...]:
    """Top-level children of ``public/``, sorted by name. Missing dir -> ()."""
    root = Path(public_dir)
    if not root.is_dir():
        return ()
    return tuple(
        PublicDirEntry(name=child.name, is_directory=child.is_dir())
        for child in sorted(root.iterdir(), key=lambda item: item.name)
    )
