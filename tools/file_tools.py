"""File-system leaves: concatenation, copying, templates, HTML and archives."""

from __future__ import annotations

import html
import json
import re
import shutil
import zipfile
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

_WS_BETWEEN_TAGS = re.compile(r">\s+<")
_WS_RUN = re.compile(r"\s{2,}")


def list_files(root: Path, suffixes: str | Sequence[str]) -> list[Path]:
    """All files under ``root`` with one of ``suffixes``, sorted for stable output."""
    if isinstance(suffixes, str):
        suffixes = (suffixes,)
    if not root.exists():
        return []
    wanted = {suffix.lower() for suffix in suffixes}
    return sorted(path for path in root.rglob("*") if path.is_file() and path.suffix.lower() in wanted)


def concat_files(sources: Iterable[Path], dest: Path, wrapper: str | None = None) -> Path:
    """Join ``sources`` with newlines into ``dest``.

    ``wrapper`` is a format string with a ``{body}`` field applied to the
    joined text.
    """
    parts: list[str] = []
    for source in sources:
        if not source.is_file():
            raise FileNotFoundError(f"Cannot concatenate missing file: {source}")
        parts.append(source.read_text(encoding="utf-8"))
    body = "\n".join(parts)
    if wrapper is not None:
        body = wrapper.format(body=body)
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text(body, encoding="utf-8")
    return dest


def copy_path(src: Path, dest: Path) -> Path:
    """Copy a file or a directory tree, merging into an existing destination."""
    if src.is_dir():
        shutil.copytree(src, dest, dirs_exist_ok=True)
    elif src.is_file():
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dest)
    else:
        raise FileNotFoundError(f"Nothing to copy at {src}")
    return dest


def write_images_list(images: Iterable[Path], src_root: Path, dest: Path) -> Path:
    """Write the JSON list of image paths relative to ``src_root`` (leading slash kept)."""
    listed = ["/" + path.relative_to(src_root).as_posix() for path in images]
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text(json.dumps(listed), encoding="utf-8")
    return dest


def minify_html(text: str) -> str:
    return _WS_RUN.sub(" ", _WS_BETWEEN_TAGS.sub("><", text)).strip()


def build_template_cache(
    src_dir: Path,
    dest: Path,
    module: str = "app.templates",
    exclude: Sequence[str] = ("index.html",),
) -> Path:
    """Compile HTML partials into one script that fills an Angular ``$templateCache``.

    Files directly under ``src_dir`` named in ``exclude`` are left out.
    """
    lines = [f"angular.module({json.dumps(module)}).run([\"$templateCache\", function($templateCache) {{"]
    for path in list_files(src_dir, ".html"):
        relative = path.relative_to(src_dir).as_posix()
        if relative in exclude:
            continue
        content = minify_html(path.read_text(encoding="utf-8"))
        lines.append(f"$templateCache.put({json.dumps(relative)},{json.dumps(content)});")
    lines.append("}]);")
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text("".join(lines), encoding="utf-8")
    return dest


def render_index(
    template: str,
    *,
    scripts: Sequence[str],
    styles: Sequence[str],
    connection: str,
    build_type: str,
    network: dict[str, Any],
) -> str:
    """Inject build settings, stylesheets and scripts into the page template."""
    settings = {"build": build_type, "connection": connection, "network": network}
    head = "".join(f'<link rel="stylesheet" href="{html.escape(href)}">' for href in styles)
    body = f"<script>window.__BUILD_CONFIG__ = {json.dumps(settings, sort_keys=True)};</script>"
    body += "".join(f'<script src="{html.escape(src)}"></script>' for src in scripts)

    if "</head>" not in template or "</body>" not in template:
        raise ValueError("index template needs both </head> and </body>")
    page = template.replace("</head>", f"{head}</head>", 1)
    return page.replace("</body>", f"{body}</body>", 1)


def zip_directory(src_dir: Path, dest: Path) -> Path:
    """Archive every file under ``src_dir`` with paths relative to it."""
    if not src_dir.is_dir():
        raise FileNotFoundError(f"Nothing to archive at {src_dir}")
    dest.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(dest, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for path in sorted(src_dir.rglob("*")):
            if path.is_file():
                archive.write(path, path.relative_to(src_dir).as_posix())
    return dest


def set_json_version(path: Path, version: str) -> Path:
    """Rewrite the ``version`` field of a JSON document in place."""
    with path.open("r", encoding="utf-8") as fh:
        document = json.load(fh)
    if not isinstance(document, dict):
        raise ValueError(f"Expected a JSON object in {path}")
    document["version"] = version
    path.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")
    return path
