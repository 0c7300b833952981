"""
Prompt Template Engine for backend prompt generation.
Handles template loading, rendering, and validation.
"""
import yaml
from typing import Dict, Any, Optional, List
from pathlib import Path
from jinja2 import Environment, TemplateError
from dataclasses import dataclass, field

from ...core.config import settings
from ...core.exceptions import ConfigurationError
from ...utils.logging import CorrelatedLogger


@dataclass
class PromptSection:
    """Represents a section of a prompt."""
    title: str
    body: str = ""
    fields: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class PromptConfig:
    """Configuration for a complete prompt template."""
    system_role: str
    instruction: str
    sections: List[PromptSection]
    response_format: Dict[str, str]


class PromptTemplateEngine:
    """
    Template engine for managing and rendering backend prompts.

    Prompts live in ``prompts/<name>/<language>.yaml``. The assembled text is
    rendered with Jinja2 so sections can use variables and conditionals.
    """

    def __init__(self, config_dir: Optional[str] = None):
        """
        Initialize the template engine.

        Args:
            config_dir: Path to configuration directory. Defaults to vidnotes/config/
        """
        self.logger = CorrelatedLogger(__name__)

        if config_dir is None:
            config_dir = Path(__file__).parent.parent

        self.config_dir = Path(config_dir)
        self.prompts_dir = self.config_dir / "prompts"

        self.jinja_env = Environment(
            trim_blocks=True,
            lstrip_blocks=True,
            autoescape=False
        )

        self._config_cache: Dict[str, Dict[str, Any]] = {}

        self.logger.info(f"PromptTemplateEngine initialized with config_dir: {config_dir}")

    def load_prompt_config(self, prompt_name: str, language: Optional[str] = None) -> PromptConfig:
        """
        Load prompt configuration for a prompt name and language.

        Falls back to the default language when the requested one is missing.

        Raises:
            ConfigurationError: If configuration cannot be loaded
        """
        language = language or settings.default_language
        cache_key = f"{prompt_name}_{language}"

        if cache_key in self._config_cache:
            return self._build_prompt_config(self._config_cache[cache_key])

        config_path = self.prompts_dir / prompt_name / f"{language}.yaml"

        if not config_path.exists():
            if language != settings.default_language:
                self.logger.warning(
                    f"Prompt {prompt_name}/{language} not found, using {settings.default_language}"
                )
                return self.load_prompt_config(prompt_name, settings.default_language)
            raise ConfigurationError(
                f"prompts/{prompt_name}",
                f"not found; available languages: {self._get_available_languages(prompt_name)}"
            )

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"prompts/{prompt_name}", f"failed to load: {e}")

        self._config_cache[cache_key] = config_data

        self.logger.debug(f"Loaded prompt configuration: {prompt_name}/{language}")
        return self._build_prompt_config(config_data)

    def render_prompt(
        self,
        prompt_name: str,
        language: Optional[str] = None,
        **template_vars
    ) -> str:
        """
        Render the complete prompt with template variables.

        Args:
            prompt_name: Prompt directory name (e.g., 'chapter_outline')
            language: Language code (e.g., 'en')
            **template_vars: Variables to pass to the template

        Returns:
            Rendered prompt string
        """
        config = self.load_prompt_config(prompt_name, language)

        prompt_parts = [config.system_role.strip(), "", config.instruction.strip(), ""]

        for section in config.sections:
            prompt_parts.append(f"{section.title}:")
            if section.body:
                prompt_parts.append(section.body.rstrip())

            for number, field_info in enumerate(section.fields, start=1):
                field_name = field_info['field']
                description = field_info.get('description', '')

                if 'options' in field_info:
                    options = ', '.join(field_info['options'])
                    prompt_parts.append(f"{number}) {field_name}: {description} (one of: {options})")
                elif field_info.get('type') == 'float':
                    low, high = field_info.get('range', ['0.0', '1.0'])
                    prompt_parts.append(f"{number}) {field_name}: {description} ({low}-{high})")
                else:
                    prompt_parts.append(f"{number}) {field_name}: {description}")

            prompt_parts.append("")

        if config.response_format.get('instruction'):
            prompt_parts.append(config.response_format['instruction'].strip())

        full_prompt = "\n".join(prompt_parts)

        try:
            full_prompt = self.jinja_env.from_string(full_prompt).render(**template_vars)
        except TemplateError as e:
            self.logger.error(f"Failed to render prompt: {prompt_name} - {str(e)}")
            raise ConfigurationError(f"prompts/{prompt_name}", f"rendering failed: {e}")

        self.logger.debug(f"Rendered prompt for {prompt_name} ({len(full_prompt)} chars)")
        return full_prompt.strip()

    def get_available_languages(self, prompt_name: str) -> List[str]:
        """Get list of available languages for a prompt."""
        return self._get_available_languages(prompt_name)

    def get_available_prompts(self) -> List[str]:
        """Get list of available prompt names."""
        if not self.prompts_dir.exists():
            return []

        return sorted(
            item.name for item in self.prompts_dir.iterdir()
            if item.is_dir() and not item.name.startswith(('.', '_'))
        )

    def validate_configuration(self, prompt_name: str, language: Optional[str] = None) -> bool:
        """
        Validate that a configuration is properly formatted.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        config = self.load_prompt_config(prompt_name, language)

        if not config.system_role.strip():
            raise ConfigurationError(f"prompts/{prompt_name}", "system_role cannot be empty")

        if not config.instruction.strip():
            raise ConfigurationError(f"prompts/{prompt_name}", "instruction cannot be empty")

        for section in config.sections:
            for field_info in section.fields:
                if 'field' not in field_info:
                    raise ConfigurationError(
                        f"prompts/{prompt_name}",
                        f"field missing 'field' name in section '{section.title}'"
                    )

        return True

    def _build_prompt_config(self, config_data: Dict[str, Any]) -> PromptConfig:
        """Build PromptConfig object from raw configuration data."""
        sections = [
            PromptSection(
                title=section_data.get('title', 'SECTION'),
                body=section_data.get('body', ''),
                fields=section_data.get('fields', [])
            )
            for section_data in config_data.get('sections', []) or []
        ]

        return PromptConfig(
            system_role=config_data.get('system_role', ''),
            instruction=config_data.get('instruction', ''),
            sections=sections,
            response_format=config_data.get('response_format', {}) or {}
        )

    def _get_available_languages(self, prompt_name: str) -> List[str]:
        """Get available language codes for a prompt."""
        prompt_dir = self.prompts_dir / prompt_name

        if not prompt_dir.exists():
            return []

        return sorted(
            item.stem for item in prompt_dir.iterdir()
            if item.is_file() and item.suffix == '.yaml'
        )


# Global template engine instance
_template_engine = None


def get_template_engine() -> PromptTemplateEngine:
    """Get global template engine instance (singleton pattern)."""
    global _template_engine
    if _template_engine is None:
        _template_engine = PromptTemplateEngine()
    return _template_engine
