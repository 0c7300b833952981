"""Template system for backend prompt generation."""

from .prompt_templates import PromptTemplateEngine, get_template_engine

__all__ = ['PromptTemplateEngine', 'get_template_engine']
