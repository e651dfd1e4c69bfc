"""Root ``package.json`` construction.

The manifest is assembled in INIT so that later plugins (addons,
integration) can add dependencies and scripts to ``context.data
["package_json"]`` during GENERATE; it is written to disk in POST_GENERATE.
"""

from __future__ import annotations

import asyncio
from typing import Any

from stackgen.config import ProjectConfig
from stackgen.core.context import PluginContext
from stackgen.core.plugin import hook
from stackgen.core.stages import Stage
from stackgen.plugins.base import StandardPlugin
from stackgen.utils import dump_json, load_json, sanitize_name

Deps = dict[str, str]

REACT = {"react": "^18.3.1", "react-dom": "^18.3.1"}
VITE = {"vite": "^6.0.7"}

BACKEND_DEPENDENCIES: dict[str, tuple[Deps, Deps]] = {
    "express": (
        {
            "express": "^4.21.2",
            "cors": "^2.8.5",
            "helmet": "^8.0.0",
            "morgan": "^1.10.0",
            "dotenv": "^16.4.7",
        },
        {"nodemon": "^3.1.9"},
    ),
    "fastify": (
        {
            "fastify": "^5.2.1",
            "@fastify/cors": "^10.0.2",
            "@fastify/helmet": "^13.0.1",
            "dotenv": "^16.4.7",
        },
        {},
    ),
    "hono": ({"hono": "^4.6.16"}, {}),
    "next": ({"next": "^15.1.3", **REACT}, {}),
    "elysia": ({"elysia": "^1.2.10", "@elysiajs/cors": "^1.2.0"}, {}),
    "convex": ({"convex": "^1.17.4"}, {}),
}

DATABASE_DEPENDENCIES: dict[str, tuple[Deps, Deps]] = {
    "sqlite": ({"better-sqlite3": "^11.7.0"}, {}),
    "postgres": ({"pg": "^8.13.1"}, {"@types/pg": "^8.11.10"}),
    "mysql": ({"mysql2": "^3.12.0"}, {}),
    "mongodb": ({"mongodb": "^6.12.0"}, {}),
}

ORM_DEPENDENCIES: dict[str, tuple[Deps, Deps]] = {
    "drizzle": ({"drizzle-orm": "^0.38.3"}, {"drizzle-kit": "^0.30.1"}),
    "prisma": ({"@prisma/client": "^6.2.1"}, {"prisma": "^6.2.1"}),
    "mongoose": ({"mongoose": "^8.9.3"}, {}),
}

FRONTEND_DEPENDENCIES: dict[str, tuple[Deps, Deps]] = {
    "react": (dict(REACT), {"@vitejs/plugin-react": "^4.3.4", **VITE}),
    "vue": ({"vue": "^3.5.13"}, {"@vitejs/plugin-vue": "^5.2.1", **VITE}),
    "svelte": ({}, {"svelte": "^5.16.0", "@sveltejs/vite-plugin-svelte": "^5.0.3", **VITE}),
    "solid": ({"solid-js": "^1.9.3"}, {"vite-plugin-solid": "^2.11.0", **VITE}),
    "nextjs": ({"next": "^15.1.3", **REACT}, {}),
    "nuxt": ({"nuxt": "^3.15.1", "vue": "^3.5.13"}, {}),
    "angular": (
        {
            "@angular/core": "^19.0.5",
            "@angular/common": "^19.0.5",
            "@angular/platform-browser": "^19.0.5",
            "rxjs": "^7.8.1",
            "zone.js": "^0.15.0",
        },
        {"@angular/cli": "^19.0.6", "@angular/compiler-cli": "^19.0.5"},
    ),
    "react-native": ({"expo": "^52.0.24", "react": "^18.3.1", "react-native": "^0.76.5"}, {}),
    "remix": (
        {"@remix-run/node": "^2.15.2", "@remix-run/react": "^2.15.2", **REACT},
        {"@remix-run/dev": "^2.15.2", **VITE},
    ),
    "astro": ({"astro": "^5.1.2"}, {}),
    "sveltekit": (
        {},
        {
            "@sveltejs/kit": "^2.15.1",
            "@sveltejs/vite-plugin-svelte": "^5.0.3",
            "svelte": "^5.16.0",
            **VITE,
        },
    ),
    "tanstack-router": (
        {"@tanstack/react-router": "^1.95.1", **REACT},
        {"@vitejs/plugin-react": "^4.3.4", **VITE},
    ),
}

AUTH_DEPENDENCIES: dict[str, tuple[Deps, Deps]] = {
    "better-auth": ({"better-auth": "^1.1.10"}, {}),
    "clerk": ({"@clerk/clerk-js": "^5.43.5"}, {}),
}

REACT_FRONTENDS = frozenset({"react", "nextjs", "remix", "tanstack-router", "react-native"})
VITE_FRONTENDS = frozenset({"react", "vue", "svelte", "solid", "sveltekit", "tanstack-router"})


# ---------------------------------------------------------------------------
# Scripts
# ---------------------------------------------------------------------------


def frontend_scripts(framework: str, directory: str) -> dict[str, str]:
    """``dev:<dir>`` / ``build:<dir>`` scripts for one frontend."""
    if framework in VITE_FRONTENDS:
        return {
            f"dev:{directory}": f"vite {directory}",
            f"build:{directory}": f"vite build {directory}",
            f"preview:{directory}": f"vite preview {directory}",
        }
    if framework == "nextjs":
        return {
            f"dev:{directory}": f"next dev {directory}",
            f"build:{directory}": f"next build {directory}",
        }
    if framework == "nuxt":
        return {
            f"dev:{directory}": f"nuxt dev {directory}",
            f"build:{directory}": f"nuxt build {directory}",
        }
    if framework == "astro":
        return {
            f"dev:{directory}": f"astro dev --root {directory}",
            f"build:{directory}": f"astro build --root {directory}",
        }
    if framework == "remix":
        return {
            f"dev:{directory}": f"cd {directory} && remix vite:dev",
            f"build:{directory}": f"cd {directory} && remix vite:build",
        }
    if framework == "angular":
        return {
            f"dev:{directory}": f"cd {directory} && ng serve",
            f"build:{directory}": f"cd {directory} && ng build",
        }
    if framework == "react-native":
        return {f"dev:{directory}": f"cd {directory} && expo start"}
    return {}


def backend_scripts(config: ProjectConfig) -> dict[str, str]:
    if config.backend == "express":
        return {
            "dev:backend": "nodemon backend/server.js",
            "start:backend": "node backend/server.js",
        }
    if config.backend == "fastify":
        return {
            "dev:backend": "node --watch backend/server.js",
            "start:backend": "node backend/server.js",
        }
    if config.backend == "hono":
        if config.runtime == "workers":
            return {"dev:backend": "wrangler dev backend/src/index.js"}
        if config.runtime == "bun":
            return {
                "dev:backend": "bun --watch backend/src/index.js",
                "start:backend": "bun backend/src/index.js",
            }
        return {
            "dev:backend": "node --watch backend/src/index.js",
            "start:backend": "node backend/src/index.js",
        }
    if config.backend == "elysia":
        return {
            "dev:backend": "bun --watch backend/src/index.js",
            "start:backend": "bun backend/src/index.js",
        }
    if config.backend == "convex":
        return {"dev:backend": "convex dev"}
    return {}


def orm_scripts(config: ProjectConfig) -> dict[str, str]:
    if config.orm == "drizzle":
        return {"db:push": "drizzle-kit push", "db:studio": "drizzle-kit studio"}
    if config.orm == "prisma":
        return {"db:push": "prisma db push", "db:generate": "prisma generate"}
    return {}


def _merge(target: dict[str, Any], deps: Deps, dev_deps: Deps) -> None:
    target["dependencies"].update(deps)
    target["devDependencies"].update(dev_deps)


def build_manifest(config: ProjectConfig) -> dict[str, Any]:
    """Build the package.json skeleton for *config*."""
    manifest: dict[str, Any] = {
        "name": sanitize_name(config.project_name),
        "version": "1.0.0",
        "private": True,
        "description": describe(config),
        "main": "index.js",
        "scripts": {},
        "dependencies": {},
        "devDependencies": {},
        "keywords": keywords(config),
        "author": "",
        "license": "MIT",
        "engines": {"node": ">=18.0.0"},
    }

    for framework in config.frontends:
        _merge(manifest, *FRONTEND_DEPENDENCIES.get(framework, ({}, {})))
    if config.has_backend:
        _merge(manifest, *BACKEND_DEPENDENCIES.get(config.backend, ({}, {})))
        if config.backend == "hono" and config.runtime in ("none", "node"):
            manifest["dependencies"]["@hono/node-server"] = "^1.13.7"
        if config.runtime == "workers":
            manifest["devDependencies"]["wrangler"] = "^3.99.0"
    if config.database != "none":
        _merge(manifest, *DATABASE_DEPENDENCIES[config.database])
    if config.orm != "none":
        _merge(manifest, *ORM_DEPENDENCIES[config.orm])
    if config.auth != "none":
        _merge(manifest, *AUTH_DEPENDENCIES[config.auth])
    if config.typescript:
        manifest["devDependencies"].update({"typescript": "^5.7.2", "@types/node": "^22.10.5"})
        if any(fw in REACT_FRONTENDS for fw in config.frontends):
            manifest["devDependencies"].update(
                {"@types/react": "^18.3.18", "@types/react-dom": "^18.3.5"}
            )

    scripts = manifest["scripts"]
    for framework, directory in config.frontend_dirs.items():
        scripts.update(frontend_scripts(framework, directory))
    scripts.update(backend_scripts(config))
    scripts.update(orm_scripts(config))
    scripts.update(aggregate_scripts(scripts, config.package_manager))
    if len([name for name in scripts if name.startswith("dev:")]) > 1:
        manifest["devDependencies"]["concurrently"] = "^9.1.2"
    return manifest


def aggregate_scripts(scripts: dict[str, str], package_manager: str) -> dict[str, str]:
    """Top-level ``dev`` / ``build`` / ``start`` / ``test`` scripts."""
    dev = [name for name in scripts if name.startswith("dev:")]
    build = [name for name in scripts if name.startswith("build:")]
    aggregated: dict[str, str] = {}

    if len(dev) > 1:
        aggregated["dev"] = f'concurrently "{package_manager}:dev:*"'
    elif dev:
        aggregated["dev"] = f"{package_manager} run {dev[0]}"
    else:
        aggregated["dev"] = "node --watch index.js"

    if build:
        aggregated["build"] = " && ".join(f"{package_manager} run {name}" for name in build)
    else:
        aggregated["build"] = "echo 'Nothing to build'"

    aggregated["start"] = (
        f"{package_manager} run start:backend" if "start:backend" in scripts else "node index.js"
    )
    aggregated["test"] = "echo 'No tests specified' && exit 0"
    return aggregated


def describe(config: ProjectConfig) -> str:
    parts = []
    if config.has_frontend:
        parts.append(", ".join(config.frontends))
    if config.has_backend:
        parts.append(config.backend)
    if not parts:
        return "A JavaScript application"
    return f"A {' + '.join(parts)} application"


def keywords(config: ProjectConfig) -> list[str]:
    words = ["javascript", "nodejs"]
    if config.has_backend:
        words.append(config.backend)
    words.extend(config.frontends)
    if config.database != "none":
        words.append(config.database)
    if config.typescript:
        words.append("typescript")
    return words


def merge_manifests(existing: dict[str, Any], generated: dict[str, Any]) -> dict[str, Any]:
    """Combine an on-disk manifest with the generated one.

    Existing values win: scalar fields are kept as they are and existing
    entries of ``dependencies`` / ``devDependencies`` / ``scripts`` keep
    their value; generated entries are added alongside.
    """
    merged = dict(existing)
    for key, value in generated.items():
        if key in ("dependencies", "devDependencies", "scripts"):
            combined = dict(value)
            combined.update(existing.get(key) or {})
            merged[key] = combined
        elif key not in merged:
            merged[key] = value
    return merged


def finalize_manifest(manifest: dict[str, Any]) -> dict[str, Any]:
    """Sort dependency maps the way npm writes them."""
    result = dict(manifest)
    for key in ("dependencies", "devDependencies"):
        if key in result:
            result[key] = dict(sorted(result[key].items()))
    return result


class PackageJsonPlugin(StandardPlugin):
    """Builds the manifest in INIT and writes it in POST_GENERATE."""

    name = "package-json"
    priority = 10

    @hook(Stage.INIT)
    async def build(self, context: PluginContext) -> PluginContext:
        manifest = build_manifest(context.config)
        context.data["package_json"] = manifest
        context.data["scripts"] = manifest["scripts"]
        return context

    @hook(Stage.POST_GENERATE)
    async def write(self, context: PluginContext) -> PluginContext:
        manifest = context.data.get("package_json") or build_manifest(context.config)
        path = context.project_dir / "package.json"
        if path.exists():
            existing = await asyncio.to_thread(load_json, path)
            manifest = merge_manifests(existing, manifest)
        manifest = finalize_manifest(manifest)
        context.data["package_json"] = manifest
        context.data["scripts"] = manifest.get("scripts", {})
        await self.write_file(context, "package.json", dump_json(manifest))
        return context
