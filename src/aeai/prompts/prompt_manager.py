import inspect
import logging

from jinja2 import Environment, FileSystemLoader, select_autoescape

from src.aeai.config import ROOT_DIR
from src.aeai.prompts import analysis_prompts

logger = logging.getLogger(__name__)


class PromptManager:
    """
    Manages loading and rendering of Jinja2 prompt templates.
    """
    def __init__(self):
        """Initializes the PromptManager."""
        template_dir = ROOT_DIR / "src" / "aeai" / "prompts" / "templates"
        if not template_dir.exists():
            logger.error("Prompt template directory not found at: %s", template_dir)
            raise FileNotFoundError(f"Prompt template directory not found: {template_dir}")

        self.env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._load_prompt_constants_as_globals()
        logger.info("PromptManager initialized and prompt constants loaded.")

    def _load_prompt_constants_as_globals(self):
        """
        Inspects the analysis_prompts module and loads all uppercase string
        constants as global variables in the Jinja2 environment.
        """
        for name, value in inspect.getmembers(analysis_prompts):
            if name.isupper() and isinstance(value, str):
                self.env.globals[name] = value

    def render(self, template_name: str, **kwargs) -> str:
        """
        Renders a prompt template with the given context.

        Args:
            template_name: The name of the template file (e.g., 'system_prompt.jinja2').
            **kwargs: The context variables to pass to the template.

        Returns:
            The rendered prompt string, or an empty string when rendering fails.
        """
        try:
            template = self.env.get_template(template_name)
            return template.render(**kwargs)
        except Exception as e:
            logger.error("Failed to render prompt template '%s': %s", template_name, e, exc_info=True)
            return ""
