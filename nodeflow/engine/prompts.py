"""Prompt rendering for text-generation nodes.

Templates are Jinja2 rendered in a sandbox, since node authors can supply
their own ``system`` template. Bindings are ``instruction``, ``requirement``
(str or None) and ``sources`` (list of ExecutionSource).
"""

from __future__ import annotations

import functools
from typing import Any, Protocol

from jinja2.sandbox import SandboxedEnvironment

DEFAULT_TEXT_GENERATION_PROMPT = """\
You are tasked with generating text based on specific instructions, requirements, and sources provided by the user. Follow these steps carefully:

1. Read and analyze the following inputs:

<instruction>
{{ instruction }}
</instruction>
{% if requirement %}

<requirement>
{{ requirement }}
</requirement>
{% endif %}
{% if sources %}

<sources>
{% for source in sources %}
{% if source.type == "text" %}
<source type="text" id="{{ source.node_id }}">
{{ source.content }}
</source>
{% else %}
<source type="{{ source.type }}" title="{{ source.title }}" id="{{ source.node_id }}">
{{ source.content }}
</source>
{% endif %}
{% endfor %}
</sources>
{% endif %}

2. Pay close attention to the instruction, which outlines the main task you need to accomplish.

3. If a requirement is given, make sure your generated text strictly satisfies it.

4. Use the sources as reference material. Ground facts in them and do not contradict them.

5. Plan the structure of your artifact first, then write its title and content.
   Format the content as markdown.

6. Finally, describe the artifact you created and suggest how it could be improved.
"""


class PromptRenderer(Protocol):
    def render(self, template: str, bindings: dict[str, Any]) -> str: ...


class JinjaPromptRenderer:
    """Renders prompt templates in a sandboxed Jinja2 environment."""

    def __init__(self, cache_size: int = 128) -> None:
        self._env = SandboxedEnvironment(
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            autoescape=False,
        )
        self._compile = functools.lru_cache(maxsize=cache_size)(self._env.from_string)

    def render(self, template: str, bindings: dict[str, Any]) -> str:
        return self._compile(template).render(**bindings)
