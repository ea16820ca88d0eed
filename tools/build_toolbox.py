"""Leaf actions for the asset build, bound to one manifest and configuration.

Each public method returns an ``Action`` in the completion style that suits
the step: plain sync calls for single operations, streams for multi-step
pipelines, and a done-callback for the concurrent trading-view download.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from core.settings import AppConfig, BuildManifest, BuildVariant
from executor.action_adapter import Action, ActionContext, DoneSignal
from executor.command_executor import check_command, render_command
from tools import file_tools, net_tools

logger = logging.getLogger("wavebuild.toolbox")

DESKTOP_WRAPPER = "(function () {{\nvar module = undefined;\n{body}}})();"
IMAGE_SUFFIXES = (".png", ".svg", ".jpg")


@dataclass(frozen=True)
class BuildPaths:
    root: Path
    src_dir: Path
    dist_dir: Path
    tmp_dir: Path

    @classmethod
    def from_runtime(cls, paths: dict[str, Path]) -> BuildPaths:
        return cls(
            root=paths["root"],
            src_dir=paths["src_dir"],
            dist_dir=paths["dist_dir"],
            tmp_dir=paths["tmp_dir"],
        )

    @property
    def tmp_js(self) -> Path:
        return self.tmp_dir / "js"

    @property
    def tmp_css(self) -> Path:
        return self.tmp_dir / "css"

    @property
    def trading_view(self) -> Path:
        return self.tmp_dir / "trading-view"

    def target(self, variant: BuildVariant) -> Path:
        return self.dist_dir / variant.relative_dir


def _min_name(name: str, minified: bool) -> str:
    return name.replace(".js", ".min.js") if minified else name


class BuildToolbox:
    """Factory of leaf actions; the task graph engine never looks inside them."""

    vendor_name = "vendors.js"
    bundle_name = "bundle.js"
    templates_name = "templates.js"

    def __init__(self, manifest: BuildManifest, config: AppConfig, paths: BuildPaths) -> None:
        self.manifest = manifest
        self.config = config
        self.paths = paths

    def _command(self, key: str, **values: object) -> list[str]:
        template = getattr(self.config.commands, key)
        return render_command(template, {"root": self.paths.root, **values})

    def _exec(self, key: str, **values: object) -> str:
        return check_command(self._command(key, **values), cwd=self.paths.root)

    def _tmp_script(self, name: str, minified: bool = False) -> Path:
        return self.paths.tmp_js / _min_name(name, minified)

    @property
    def _style_path(self) -> Path:
        return self.paths.tmp_css / self.manifest.css_name

    # ── shared steps ────────────────────────────────────────────────

    def shell(self, key: str) -> Action:
        """Run one configured command (clean, eslint, less)."""

        def run(context: ActionContext) -> None:
            context.logger.info("running %s", key)
            self._exec(key)

        run.__name__ = f"shell_{key}"
        return Action.sync(run)

    def load_trading_view(self, workers: int = 4) -> Action:
        """Download every trading-view file concurrently, then signal done once."""
        source = self.manifest.trading_view

        def run(context: ActionContext, done: DoneSignal) -> None:
            if not source.files:
                done()
                return
            client = net_tools.build_client()
            pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="download")
            remaining = [len(source.files)]
            errors: list[BaseException] = []
            lock = threading.Lock()

            def settle(future: Future[Path]) -> None:
                error = future.exception()
                with lock:
                    if error is not None:
                        errors.append(error)
                    remaining[0] -= 1
                    finished = remaining[0] == 0
                if finished:
                    client.close()
                    pool.shutdown(wait=False)
                    done(errors[0] if errors else None)

            for relative in source.files:
                url = f"{source.domain.rstrip('/')}/{relative}"
                future = pool.submit(net_tools.download, client, url, self.paths.trading_view / relative)
                future.add_done_callback(settle)

        return Action.callback(run)

    def templates(self) -> Action:
        def run(context: ActionContext) -> None:
            file_tools.build_template_cache(self.paths.src_dir, self._tmp_script(self.templates_name))

        return Action.sync(run)

    def concat_style(self) -> Action:
        def run(context: ActionContext) -> Iterator[Path]:
            sheets = [self.paths.root / sheet for sheet in self.manifest.stylesheets]
            sheets.append(self.paths.tmp_css / "style.css")
            yield file_tools.concat_files(sheets, self._style_path)

        return Action.stream(run)

    def concat_develop_sources(self) -> Action:
        def run(context: ActionContext) -> Iterator[Path]:
            sources = file_tools.list_files(self.paths.src_dir, ".js")
            context.logger.debug("bundling %d source file(s)", len(sources))
            yield file_tools.concat_files(sources, self._tmp_script(self.bundle_name))

        return Action.stream(run)

    def concat_develop_vendors(self) -> Action:
        def run(context: ActionContext) -> Iterator[Path]:
            vendors = [self.paths.root / vendor for vendor in self.manifest.vendors]
            yield file_tools.concat_files(vendors, self._tmp_script(self.vendor_name))

        return Action.stream(run)

    def babel(self) -> Action:
        def run(context: ActionContext) -> None:
            bundle = self._tmp_script(self.bundle_name)
            self._exec("babel", src=bundle, dest=bundle)

        return Action.sync(run)

    def uglify(self) -> Action:
        """Minify bundle and templates in parallel; the stream settles both."""

        def run(context: ActionContext) -> Iterator[Future[str]]:
            with ThreadPoolExecutor(max_workers=2, thread_name_prefix="uglify") as pool:
                futures = [
                    pool.submit(
                        self._exec,
                        "uglify",
                        src=self._tmp_script(name),
                        dest=self._tmp_script(name, minified=True),
                    )
                    for name in (self.bundle_name, self.templates_name)
                ]
                yield from futures

        return Action.stream(run)

    def up_version_json(self) -> Action:
        version = self.manifest.version

        def run(context: ActionContext) -> Iterator[object]:
            context.logger.info("new version: %s", version)
            for relative in self.manifest.version_files:
                yield file_tools.set_json_version(self.paths.root / relative, version)
            git = self.config.commands.git
            yield check_command([*git, "add", "."], cwd=self.paths.root)
            message = f'Message: "{version}" for other json files'
            yield check_command([*git, "commit", "-m", message], cwd=self.paths.root)

        return Action.stream(run)

    def upload(self, configuration: str) -> Action:
        bucket = self.manifest.upload_buckets[configuration]

        def run(context: ActionContext) -> None:
            self._exec("upload", src=self.paths.dist_dir / configuration, bucket=bucket)

        return Action.sync(run)

    # ── per-variant steps ───────────────────────────────────────────

    def concat_variant(self, variant: BuildVariant) -> Action:
        """Vendors + bundle + templates into the variant's script; desktop gets an IIFE."""
        target = self.paths.target(variant) / "js" / self.manifest.js_name(variant)
        wrapper = DESKTOP_WRAPPER if variant.build == "desktop" else None

        def run(context: ActionContext) -> None:
            sources = [
                self._tmp_script(self.vendor_name),
                self._tmp_script(self.bundle_name, variant.minified),
                self._tmp_script(self.templates_name, variant.minified),
            ]
            file_tools.concat_files(sources, target, wrapper=wrapper)

        return Action.sync(run)

    def copy_variant(self, variant: BuildVariant) -> Action:
        target = self.paths.target(variant)
        src = self.paths.src_dir
        root = self.paths.root

        def run(context: ActionContext) -> Iterator[Path]:
            for path in file_tools.list_files(src, ".json"):
                yield file_tools.copy_path(path, target / path.relative_to(src))
            yield file_tools.copy_path(src / "fonts", target / "fonts")
            if variant.build == "desktop":
                yield file_tools.copy_path(root / "electron" / "main.js", target / "main.js")
                yield file_tools.copy_path(root / "electron" / "package.json", target / "package.json")
                yield file_tools.copy_path(root / "electron" / "icons" / "icon.png", target / "img" / "icon.png")
                yield file_tools.copy_path(self.paths.trading_view, target / "trading-view")
            for module in self.manifest.copy_node_modules:
                yield file_tools.copy_path(root / module, target / module)
            yield file_tools.copy_path(src / "img", target / "img")
            images = file_tools.list_files(src / "img", IMAGE_SUFFIXES)
            yield file_tools.write_images_list(images, src, target / "img" / "images-list.json")
            yield file_tools.copy_path(self._style_path, target / "css" / self.manifest.css_name)
            yield file_tools.copy_path(root / "LICENSE", target / "LICENSE")

        return Action.stream(run)

    def html_variant(self, variant: BuildVariant) -> Action:
        target = self.paths.target(variant)
        network = self.manifest.configurations[variant.configuration].model_dump()

        def run(context: ActionContext) -> None:
            template = (self.paths.src_dir / "index.html").read_text(encoding="utf-8")
            page = file_tools.render_index(
                template,
                scripts=[f"js/{self.manifest.js_name(variant)}"],
                styles=[f"css/{self.manifest.css_name}"],
                connection=variant.configuration,
                build_type=variant.build,
                network=network,
            )
            (target / "index.html").write_text(page, encoding="utf-8")
            context.logger.info("out %s", variant.configuration)

        return Action.sync(run)

    def zip_build(self, build: str) -> Action:
        release = BuildVariant(build, self.manifest.release_configuration, "min")
        archive = self.paths.dist_dir / f"{self.manifest.name}-{build}-v{self.manifest.version}.zip"

        def run(context: ActionContext) -> Iterator[Path]:
            yield file_tools.zip_directory(self.paths.target(release), archive)

        return Action.stream(run)
