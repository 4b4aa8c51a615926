from __future__ import annotations

from pathlib import Path

from nextjs_cdn.distribution.build_output import list_public_dir_entries
from nextjs_cdn.distribution.contracts import PublicDirEntry


def test_lists_top_level_children_sorted(tmp_path: Path) -> None:
    (tmp_path / "robots.txt").write_text("", encoding="utf-8")
    (tmp_path / "images" / "nested").mkdir(parents=True)
    (tmp_path / "images" / "nested" / "logo.png").write_bytes(b"")
    (tmp_path / "favicon.ico").write_bytes(b"")

    assert list_public_dir_entries(tmp_path) == (
        PublicDirEntry("favicon.ico", False),
        PublicDirEntry("images", True),
        PublicDirEntry("robots.txt", False),
    )


def test_missing_public_dir_yields_no_entries(tmp_path: Path) -> None:
    assert list_public_dir_entries(tmp_path / "public") == ()
