"""File leaf helper tests."""

from __future__ import annotations

import json
import zipfile
from pathlib import Path

import pytest

from executor.command_executor import CommandError, check_command, render_command
from tools import file_tools
from tools.build_toolbox import DESKTOP_WRAPPER


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_concat_files_in_given_order(tmp_path: Path) -> None:
    first = write(tmp_path / "b.js", "var b;")
    second = write(tmp_path / "a.js", "var a;")

    dest = file_tools.concat_files([first, second], tmp_path / "out" / "bundle.js")

    assert dest.read_text(encoding="utf-8") == "var b;\nvar a;"


def test_concat_files_with_desktop_wrapper(tmp_path: Path) -> None:
    source = write(tmp_path / "app.js", "run();\n")

    dest = file_tools.concat_files([source], tmp_path / "app.out.js", wrapper=DESKTOP_WRAPPER)

    text = dest.read_text(encoding="utf-8")
    assert text.startswith("(function () {\nvar module = undefined;\nrun();")
    assert text.endswith("})();")


def test_concat_missing_source_fails(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        file_tools.concat_files([tmp_path / "nope.js"], tmp_path / "out.js")


def test_list_files_filters_and_sorts(tmp_path: Path) -> None:
    write(tmp_path / "z" / "one.js", "")
    write(tmp_path / "a.JS", "")
    write(tmp_path / "styles.css", "")

    found = file_tools.list_files(tmp_path, ".js")

    assert [path.relative_to(tmp_path).as_posix() for path in found] == ["a.JS", "z/one.js"]
    assert file_tools.list_files(tmp_path / "missing", ".js") == []


def test_copy_path_files_and_trees(tmp_path: Path) -> None:
    write(tmp_path / "src" / "fonts" / "a.woff", "font")
    write(tmp_path / "LICENSE", "MIT")

    file_tools.copy_path(tmp_path / "src" / "fonts", tmp_path / "dist" / "fonts")
    file_tools.copy_path(tmp_path / "LICENSE", tmp_path / "dist" / "LICENSE")

    assert (tmp_path / "dist" / "fonts" / "a.woff").read_text(encoding="utf-8") == "font"
    assert (tmp_path / "dist" / "LICENSE").exists()
    with pytest.raises(FileNotFoundError):
        file_tools.copy_path(tmp_path / "ghost", tmp_path / "dist" / "ghost")


def test_images_list_has_leading_slash(tmp_path: Path) -> None:
    src = tmp_path / "src"
    images = [write(src / "img" / "logo.svg", ""), write(src / "img" / "icons" / "x.png", "")]

    dest = file_tools.write_images_list(images, src, tmp_path / "images-list.json")

    assert json.loads(dest.read_text(encoding="utf-8")) == ["/img/logo.svg", "/img/icons/x.png"]


def test_template_cache_skips_index(tmp_path: Path) -> None:
    src = tmp_path / "src"
    write(src / "index.html", "<html></html>")
    write(src / "modules" / "card.html", "<div>\n    <span>hi</span>\n</div>\n")

    dest = file_tools.build_template_cache(src, tmp_path / "templates.js")

    text = dest.read_text(encoding="utf-8")
    assert text.startswith('angular.module("app.templates").run(["$templateCache"')
    assert '$templateCache.put("modules/card.html","<div><span>hi</span></div>");' in text
    assert "index.html" not in text


def test_render_index_injects_assets() -> None:
    page = file_tools.render_index(
        "<html><head><title>x</title></head><body><main></main></body></html>",
        scripts=["js/app.min.js"],
        styles=["css/app.css"],
        connection="testnet",
        build_type="web",
        network={"code": "T"},
    )

    assert '<link rel="stylesheet" href="css/app.css"></head>' in page
    assert '"connection": "testnet"' in page
    assert page.index("__BUILD_CONFIG__") < page.index('src="js/app.min.js"') < page.index("</body>")


def test_render_index_requires_head_and_body() -> None:
    with pytest.raises(ValueError):
        file_tools.render_index("<div></div>", scripts=[], styles=[], connection="x", build_type="web", network={})


def test_zip_directory(tmp_path: Path) -> None:
    write(tmp_path / "site" / "index.html", "<html></html>")
    write(tmp_path / "site" / "js" / "app.js", "1;")

    archive = file_tools.zip_directory(tmp_path / "site", tmp_path / "out" / "site.zip")

    with zipfile.ZipFile(archive) as opened:
        assert sorted(opened.namelist()) == ["index.html", "js/app.js"]


def test_set_json_version(tmp_path: Path) -> None:
    path = write(tmp_path / "package.json", json.dumps({"name": "desktop", "version": "0.1.0"}))

    file_tools.set_json_version(path, "0.5.0")

    assert json.loads(path.read_text(encoding="utf-8")) == {"name": "desktop", "version": "0.5.0"}


def test_render_command_substitutes_placeholders() -> None:
    argv = render_command(["uglifyjs", "{src}", "-o", "{dest}"], {"src": "a.js", "dest": "a.min.js"})
    assert argv == ["uglifyjs", "a.js", "-o", "a.min.js"]
    with pytest.raises(ValueError):
        render_command(["{bucket}"], {})


def test_check_command_reports_failures(tmp_path: Path) -> None:
    assert check_command(["sh", "-c", "echo ok"], cwd=tmp_path).strip() == "ok"

    with pytest.raises(CommandError) as excinfo:
        check_command(["sh", "-c", "echo broken >&2; exit 3"], cwd=tmp_path)
    assert excinfo.value.returncode == 3
    assert "broken" in str(excinfo.value)

    with pytest.raises(CommandError) as missing:
        check_command(["definitely-not-a-real-binary-xyz"], cwd=tmp_path)
    assert missing.value.returncode == 127
