"""
Prompt templater - renders the translation request sent for each pending task

Override entries found inside the source text are prefixed as hints so the
model reuses the agreed terminology.
"""
import logging
from typing import Any, Dict, Optional, Sequence, Tuple

from jinja2 import DictLoader, Environment

logger = logging.getLogger(__name__)

TRANSLATION_TEMPLATE = """\
{% if hints %}
Considering the following translations:
{% for key, value in hints %}
{{ key }} – {{ value }}
{% endfor %}

{% endif %}
Translate this into {{ language }}:
{{ text }}

{{ language }}:
"""


class Templater:
    """Manages and renders the translation prompt"""

    def __init__(self, target_language: str = "Romanian",
                 templates: Optional[Dict[str, str]] = None):
        self.target_language = target_language
        self.env = Environment(
            loader=DictLoader(templates or {'translate': TRANSLATION_TEMPLATE}),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self.template = self.env.get_template('translate')
        logger.debug(f"Templater initialized for target language {target_language}")

    def render(self, text: str, hints: Sequence[Tuple[str, str]] = (),
               **extra: Any) -> str:
        context = {
            'text': text,
            'hints': list(hints),
            'language': self.target_language,
            **extra,
        }
        return self.template.render(context)
