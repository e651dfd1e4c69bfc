"""Addon configuration: dependencies, scripts and config files per addon."""

from __future__ import annotations

import asyncio
import os
from typing import Any

import yaml

from stackgen.config import ProjectConfig
from stackgen.core.context import PluginContext
from stackgen.core.plugin import hook
from stackgen.core.stages import Stage
from stackgen.plugins.base import StandardPlugin
from stackgen.plugins.integration import DEFAULT_BACKEND_PORT
from stackgen.utils import dump_json, sanitize_name

# addon -> (dependencies, devDependencies, scripts)
ADDON_PACKAGES: dict[str, tuple[dict[str, str], dict[str, str], dict[str, str]]] = {
    "pwa": ({}, {"vite-plugin-pwa": "^0.21.1"}, {}),
    "tauri": (
        {"@tauri-apps/api": "^2.2.0"},
        {"@tauri-apps/cli": "^2.2.2"},
        {"tauri": "tauri"},
    ),
    "biome": (
        {},
        {"@biomejs/biome": "1.9.4"},
        {"lint": "biome lint .", "format": "biome format --write ."},
    ),
    "husky": ({}, {"husky": "^9.1.7"}, {"prepare": "husky"}),
    "turborepo": ({}, {"turbo": "^2.3.3"}, {"turbo:build": "turbo run build"}),
    "vitest": ({}, {"vitest": "^2.1.8"}, {"test": "vitest run", "test:watch": "vitest"}),
    "playwright": ({}, {"@playwright/test": "^1.49.1"}, {"test:e2e": "playwright test"}),
    "cypress": (
        {},
        {"cypress": "^13.17.0"},
        {"cypress:open": "cypress open", "test:e2e": "cypress run"},
    ),
    "docker": ({}, {}, {}),
    "testing": ({}, {"jest": "^29.7.0"}, {"test": "jest"}),
}

_DB_SERVICES: dict[str, dict[str, Any]] = {
    "postgres": {
        "image": "postgres:16-alpine",
        "port": 5432,
        "volume": "/var/lib/postgresql/data",
    },
    "mysql": {"image": "mysql:8", "port": 3306, "volume": "/var/lib/mysql"},
    "mongodb": {"image": "mongo:7", "port": 27017, "volume": "/data/db"},
}

DOCKERIGNORE = "node_modules\nnpm-debug.log\n.git\n.env\ndist\ncoverage\n"


def compose_document(config: ProjectConfig, port: int) -> dict[str, Any]:
    """docker-compose structure for *config*."""
    slug = sanitize_name(config.project_name)
    app: dict[str, Any] = {"build": ".", "ports": [f"{port}:{port}"]}
    if config.has_backend:
        app["env_file"] = ["backend/.env"]
    services: dict[str, Any] = {"app": app}
    document: dict[str, Any] = {"services": services}

    spec = _DB_SERVICES.get(config.database)
    if spec is not None:
        db: dict[str, Any] = {
            "image": spec["image"],
            "ports": [f"{spec['port']}:{spec['port']}"],
            "volumes": [f"db-data:{spec['volume']}"],
        }
        if config.database == "postgres":
            db["environment"] = {
                "POSTGRES_USER": "postgres",
                "POSTGRES_PASSWORD": "postgres",
                "POSTGRES_DB": slug,
            }
        elif config.database == "mysql":
            db["environment"] = {"MYSQL_ROOT_PASSWORD": "root", "MYSQL_DATABASE": slug}
        services["db"] = db
        app["depends_on"] = ["db"]
        document["volumes"] = {"db-data": {}}
    return document


class AddonsPlugin(StandardPlugin):
    """Adds each selected addon's packages and writes its config files."""

    name = "addons"
    priority = 30

    _WRITERS: dict[str, str] = {
        "pwa": "_write_pwa",
        "tauri": "_write_tauri",
        "biome": "_write_biome",
        "husky": "_write_husky",
        "turborepo": "_write_turborepo",
        "vitest": "_write_vitest",
        "playwright": "_write_playwright",
        "cypress": "_write_cypress",
        "docker": "_write_docker",
        "testing": "_write_testing",
    }

    def can_handle(self, context: PluginContext) -> bool:
        return bool(context.config.addons)

    @hook(Stage.GENERATE)
    async def apply(self, context: PluginContext) -> PluginContext:
        manifest = context.data.setdefault(
            "package_json", {"scripts": {}, "dependencies": {}, "devDependencies": {}}
        )
        for addon in context.config.addons:
            deps, dev_deps, scripts = ADDON_PACKAGES[addon]
            manifest.setdefault("dependencies", {}).update(deps)
            manifest.setdefault("devDependencies", {}).update(dev_deps)
            manifest.setdefault("scripts", {}).update(scripts)
            writer = getattr(self, self._WRITERS[addon])
            await writer(context)
        context.data["scripts"] = manifest["scripts"]
        return context

    # -- Writers -----------------------------------------------------------

    async def _write_pwa(self, context: PluginContext) -> None:
        config = context.config
        directory = next(
            d for fw, d in config.frontend_dirs.items() if fw != "react-native"
        )
        manifest = {
            "name": config.project_name,
            "short_name": config.project_name[:12],
            "start_url": "/",
            "display": "standalone",
            "background_color": "#ffffff",
            "theme_color": "#000000",
            "icons": [],
        }
        await self.write_file(context, f"{directory}/public/manifest.webmanifest", dump_json(manifest))

    async def _write_tauri(self, context: PluginContext) -> None:
        config = context.config
        directory = next(d for fw, d in config.frontend_dirs.items() if fw != "react-native")
        tauri_conf = {
            "productName": config.project_name,
            "version": "0.1.0",
            "identifier": f"com.{sanitize_name(config.project_name).replace('-', '')}.app",
            "build": {
                "frontendDist": f"../{directory}/dist",
                "devUrl": "http://localhost:5173",
            },
            "app": {"windows": [{"title": config.project_name, "width": 1024, "height": 768}]},
        }
        await self.write_file(context, "src-tauri/tauri.conf.json", dump_json(tauri_conf))

    async def _write_biome(self, context: PluginContext) -> None:
        biome = {
            "$schema": "https://biomejs.dev/schemas/1.9.4/schema.json",
            "organizeImports": {"enabled": True},
            "formatter": {"enabled": True, "indentStyle": "space", "indentWidth": 2},
            "linter": {"enabled": True, "rules": {"recommended": True}},
            "files": {"ignore": ["node_modules", "dist", ".next", "build"]},
        }
        await self.write_file(context, "biome.json", dump_json(biome))

    async def _write_husky(self, context: PluginContext) -> None:
        pm = context.config.package_manager
        hook_path = await self.write_file(context, ".husky/pre-commit", f"{pm} test\n")
        await asyncio.to_thread(os.chmod, hook_path, 0o755)

    async def _write_turborepo(self, context: PluginContext) -> None:
        turbo = {
            "$schema": "https://turbo.build/schema.json",
            "tasks": {
                "build": {"dependsOn": ["^build"], "outputs": ["dist/**", ".next/**"]},
                "dev": {"cache": False, "persistent": True},
                "lint": {},
                "test": {},
            },
        }
        await self.write_file(context, "turbo.json", dump_json(turbo))

    async def _write_vitest(self, context: PluginContext) -> None:
        await self.render_to_file(context, "addons/vitest.config.js.hbs", "vitest.config.js")

    async def _write_playwright(self, context: PluginContext) -> None:
        await self.render_to_file(
            context, "addons/playwright.config.js.hbs", "playwright.config.js"
        )

    async def _write_cypress(self, context: PluginContext) -> None:
        await self.render_to_file(context, "addons/cypress.config.js.hbs", "cypress.config.js")

    async def _write_testing(self, context: PluginContext) -> None:
        await self.render_to_file(context, "addons/jest.config.js.hbs", "jest.config.js")

    async def _write_docker(self, context: PluginContext) -> None:
        port = context.data.get("backend_port") or DEFAULT_BACKEND_PORT
        await self.render_to_file(
            context, "addons/Dockerfile.hbs", "Dockerfile", {"appPort": port}
        )
        await self.write_file(context, ".dockerignore", DOCKERIGNORE)
        compose = yaml.safe_dump(
            compose_document(context.config, port),
            sort_keys=False,
            default_flow_style=False,
        )
        await self.write_file(context, "docker-compose.yml", compose)
