"""
src/agent/model_retry.py
Retry the SRE crew kickoff when the configured Gemini model misbehaves.

The service runs on `SRE_AGENT_MODEL` (default `gemini/gemini-2.5-flash`).
An empty LLM reply is retried once on the same model. After that, a known
failure signature steps down one model: `-latest` aliases to their pinned
name, `flash-lite` to `flash`, and `2.5-flash` to `2.0-flash`.
Exports: fallback_model_for_error, kickoff_with_model_fallback
"""

import logging
from typing import Any, Callable

EMPTY_LLM_RESPONSE_MESSAGE = "Invalid response from LLM call - None or empty."


def _is_empty_llm_response_error(exc: Exception) -> bool:
    """Return True when CrewAI surfaced an empty/None LLM response failure."""
    return EMPTY_LLM_RESPONSE_MESSAGE in str(exc)


def fallback_model_for_error(model: str, exc: Exception) -> str | None:
    """
    Pick the model to retry a failed SRE kickoff on.

    Args:
        model: Model the dispatcher ran with, e.g. `gemini/gemini-2.5-flash`.
        exc: Exception raised by the crew kickoff.
    Returns:
        Replacement model name, or None when the failure is not model-specific.
    """
    error_text = str(exc)
    if "-latest" in model and "NOT_FOUND" in error_text:
        return model.replace("-latest", "")
    if "flash-lite" in model and (
        "NOT_FOUND" in error_text or _is_empty_llm_response_error(exc)
    ):
        return model.replace("flash-lite", "flash")
    if "2.5-flash" in model and _is_empty_llm_response_error(exc):
        return model.replace("2.5-flash", "2.0-flash")
    return None


def kickoff_with_model_fallback(
    *,
    kickoff: Callable[[], Any],
    model: str,
    set_model: Callable[[str], None],
    logger: logging.Logger,
    label: str,
) -> tuple[Any, str]:
    """
    Run the SRE crew once, retrying only for empty replies or a known model fault.

    Args:
        kickoff: Zero-argument callable that runs the crew once.
        model: Configured model name.
        set_model: Points the SRE agent at another model before the final attempt.
        logger: Dispatcher logger, so failures show up under the run that hit them.
        label: Session label such as `failure-acme/widgets-1001`.
    Returns:
        Tuple of (kickoff_result, used_model_name).
    """
    try:
        return kickoff(), model
    except Exception as first_error:
        logger.exception("SRE agent %s failed on %s.", label, model)
        last_error = first_error

    if _is_empty_llm_response_error(last_error):
        logger.warning("SRE agent %s got an empty reply from %s; running it once more.", label, model)
        try:
            return kickoff(), model
        except Exception as retry_error:
            logger.exception("SRE agent %s failed again on %s.", label, model)
            last_error = retry_error

    fallback_model = fallback_model_for_error(model, last_error)
    if not fallback_model or fallback_model == model:
        raise last_error
    logger.warning("SRE agent %s falling back from %s to %s.", label, model, fallback_model)
    set_model(fallback_model)
    return kickoff(), fallback_model
