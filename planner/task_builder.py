"""Registers the asset build graph for every configured variant."""

from __future__ import annotations

from collections.abc import Iterable

from core.settings import BuildManifest, BuildVariant
from planner.task_registry import TaskRegistry
from tools.build_toolbox import BuildToolbox


def _variant_names(kind: str, variants: Iterable[BuildVariant]) -> list[str]:
    return [f"{kind}-{variant.suffix}" for variant in variants]


def build_registry(manifest: BuildManifest, toolbox: BuildToolbox, registry: TaskRegistry | None = None) -> TaskRegistry:
    """Register every build step for ``manifest`` and return the registry.

    Per-variant tasks are named ``<step>-<build>-<configuration>-<level>``;
    aggregates (``concat``, ``copy``, ``html``, ``zip``, ``all``...) only
    group dependencies and carry no action. Every step that writes into the
    tmp directory depends on ``clean``, so a build never races the cleanup.
    """
    registry = registry or TaskRegistry()
    variants = list(manifest.variants())

    registry.register("clean", [], toolbox.shell("clean"), description="Remove previous build output")
    registry.register("eslint", [], toolbox.shell("eslint"), description="Lint sources")
    registry.register("less", ["clean"], toolbox.shell("less"), description="Compile stylesheets")
    registry.register("templates", ["clean"], toolbox.templates(), description="Compile HTML templates")
    registry.register(
        "load-trading-view", ["clean"], toolbox.load_trading_view(), description="Download charting assets"
    )
    registry.register("concat-style", ["less"], toolbox.concat_style())
    registry.register("concat-develop-sources", ["clean"], toolbox.concat_develop_sources())
    registry.register("concat-develop-vendors", ["clean"], toolbox.concat_develop_vendors())
    registry.register("concat-develop", ["concat-develop-sources", "concat-develop-vendors"])
    registry.register("babel", ["concat-develop"], toolbox.babel(), description="Transpile the bundle")
    registry.register("uglify", ["babel", "templates"], toolbox.uglify(), description="Minify bundle and templates")
    registry.register("up-version-json", [], toolbox.up_version_json(), description="Sync versions and commit")

    for variant in variants:
        suffix = variant.suffix
        script_deps = ["uglify"] if variant.minified else ["babel", "templates"]
        registry.register(f"concat-{suffix}", script_deps, toolbox.concat_variant(variant))

        copy_deps = ["concat-style"]
        if variant.build == "desktop":
            copy_deps.append("load-trading-view")
        registry.register(f"copy-{suffix}", copy_deps, toolbox.copy_variant(variant))
        registry.register(f"html-{suffix}", [f"concat-{suffix}", f"copy-{suffix}"], toolbox.html_variant(variant))

    release = manifest.release_configuration
    for build in manifest.builds:
        suffix = f"{build}-{release}-min"
        registry.register(
            f"zip-{build}",
            [f"concat-{suffix}", f"html-{suffix}", f"copy-{suffix}"],
            toolbox.zip_build(build),
            description=f"Package the {release} {build} release",
        )

    upload_tasks = []
    for configuration in manifest.upload_buckets:
        name = f"upload-{configuration}"
        registry.register(name, [], toolbox.upload(configuration))
        upload_tasks.append(name)
    registry.register("upload", upload_tasks)

    concat_tasks = _variant_names("concat", variants)
    copy_tasks = _variant_names("copy", variants)
    html_tasks = _variant_names("html", variants)
    zip_tasks = [f"zip-{build}" for build in manifest.builds]

    registry.register("concat", [*concat_tasks, "concat-develop"])
    registry.register("copy", copy_tasks)
    registry.register("html", html_tasks)
    registry.register("zip", zip_tasks)
    release_variants = [variant for variant in variants if variant.configuration == release]
    registry.register(
        "build-main",
        [
            *_variant_names("concat", release_variants),
            *_variant_names("copy", release_variants),
            *_variant_names("html", release_variants),
        ],
    )
    registry.register("all", ["clean", "templates", "concat", "copy", "html", "zip"])
    return registry
