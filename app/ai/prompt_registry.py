"""
Project Planner
Prompt Registry — YAML prompt templates.

Each file in ``app/ai/prompts/`` holds one template:

    name: change_impact
    version: v1
    description: ...
    temperature: 0.7
    max_tokens: 4096
    system: |
      You are ...
    user: |
      {{context}}

``{{variable}}`` placeholders are substituted at render time; unknown
placeholders are left in place so a missing variable is visible in logs
instead of silently rendering as an empty string.

Usage:
    from app.ai.prompt_registry import PromptRegistry
    registry = PromptRegistry()
    messages = registry.render("change_impact", context=context_text)
"""

import logging
import os
import re
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_PROMPTS_DIR = os.path.join(os.path.dirname(__file__), "prompts")

_PLACEHOLDER = re.compile(r"\{\{(\s*\w+\s*)\}\}")


class PromptTemplate:
    """A single prompt template with its completion settings."""

    def __init__(self, name: str, version: str, system: str, user: str,
                 description: str = "", temperature: float = 0.7,
                 max_tokens: int = 4096):
        self.name = name
        self.version = version
        self.system = system
        self.user = user
        self.description = description
        self.temperature = temperature
        self.max_tokens = max_tokens

    def render(self, **variables) -> list[dict]:
        """Render into chat messages: an optional system and an optional user message."""
        system_rendered = self._substitute(self.system, variables)
        user_rendered = self._substitute(self.user, variables)

        messages = []
        if system_rendered.strip():
            messages.append({"role": "system", "content": system_rendered})
        if user_rendered.strip():
            messages.append({"role": "user", "content": user_rendered})
        return messages

    @staticmethod
    def _substitute(template: str, variables: dict) -> str:
        def replacer(match):
            key = match.group(1).strip()
            if key not in variables:
                return match.group(0)
            return str(variables[key])
        return _PLACEHOLDER.sub(replacer, template)

    @property
    def completion_options(self) -> dict:
        return {"temperature": self.temperature, "max_tokens": self.max_tokens}

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "system_preview": self.system[:200],
        }


class PromptRegistry:
    """Loads every ``*.yaml`` template from the prompts directory."""

    def __init__(self, prompts_dir: str | None = None):
        self._prompts_dir = prompts_dir or _PROMPTS_DIR
        self._templates: dict[str, dict[str, PromptTemplate]] = {}  # name → {version → template}
        self._load_from_dir()

    def _load_from_dir(self):
        prompts_path = Path(self._prompts_dir)
        if not prompts_path.exists():
            logger.warning("Prompts directory not found: %s", self._prompts_dir)
            return

        for yaml_file in sorted(prompts_path.glob("*.yaml")):
            with open(yaml_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
            if not data or not isinstance(data, dict):
                logger.warning("Skipping empty prompt file %s", yaml_file.name)
                continue

            tpl = PromptTemplate(
                name=data.get("name", yaml_file.stem),
                version=str(data.get("version", "v1")),
                system=data.get("system", ""),
                user=data.get("user", ""),
                description=data.get("description", ""),
                temperature=float(data.get("temperature", 0.7)),
                max_tokens=int(data.get("max_tokens", 4096)),
            )
            self._register(tpl)
            logger.debug("Loaded prompt template: %s (%s) from %s",
                         tpl.name, tpl.version, yaml_file.name)

    def _register(self, template: PromptTemplate):
        self._templates.setdefault(template.name, {})[template.version] = template

    def get(self, name: str, version: str = "v1") -> PromptTemplate | None:
        return self._templates.get(name, {}).get(version)

    def require(self, name: str, version: str = "v1") -> PromptTemplate:
        """Like get() but raises KeyError for an unknown template."""
        tpl = self.get(name, version)
        if tpl is None:
            raise KeyError(f"Prompt template not found: {name} {version}")
        return tpl

    def render(self, name: str, version: str = "v1", **variables) -> list[dict]:
        return self.require(name, version).render(**variables)

    def list_templates(self) -> list[dict]:
        return [
            tpl.to_dict()
            for versions in self._templates.values()
            for tpl in versions.values()
        ]
