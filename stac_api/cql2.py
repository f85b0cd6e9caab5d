"""
CQL2 Text Translation Hook

Filters supplied as cql2-text are translated to cql2-json before they reach
pgSTAC. No text parser ships with this module: the default translator hands
the expression through unchanged, and such a filter keeps its cql2-text tag.
Deployments that need a real translation register one with
set_text_translator().

Date: 19 OCT 2026
"""

import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

TextTranslator = Callable[[str], Any]


def _passthrough(expression: str) -> Any:
    return expression


_translator: TextTranslator = _passthrough


def set_text_translator(translator: Optional[TextTranslator]) -> None:
    """
    Install a cql2-text -> cql2-json translator.

    Args:
        translator: Callable taking the text expression and returning the
            JSON expression. None restores the pass-through default.
    """
    global _translator
    _translator = translator or _passthrough
    logger.info(f"CQL2 text translator set to {getattr(_translator, '__name__', _translator)}")


def text_to_json(expression: str) -> Any:
    """Translate a cql2-text expression with the installed translator."""
    return _translator(expression)
