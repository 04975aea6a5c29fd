"""Unit tests for src/agent/model_retry.py."""

from unittest.mock import MagicMock

import pytest

EMPTY = "Invalid response from LLM call - None or empty."


def _run(kickoff, model):
    from src.agent.model_retry import kickoff_with_model_fallback

    switched = []
    result, used_model = kickoff_with_model_fallback(
        kickoff=kickoff,
        model=model,
        set_model=switched.append,
        logger=MagicMock(),
        label="failure-acme/widgets-1",
    )
    return result, used_model, switched


def test_returns_on_first_success():
    kickoff = MagicMock(return_value="ok")

    result, used_model, switched = _run(kickoff, "gemini/gemini-2.5-flash")

    assert (result, used_model, switched) == ("ok", "gemini/gemini-2.5-flash", [])
    assert kickoff.call_count == 1


def test_retries_once_on_empty_llm_response():
    kickoff = MagicMock(side_effect=[Exception(EMPTY), "ok-after-retry"])

    result, used_model, switched = _run(kickoff, "gemini/gemini-2.5-flash")

    assert result == "ok-after-retry"
    assert used_model == "gemini/gemini-2.5-flash"
    assert switched == []


def test_latest_alias_not_found_falls_back():
    kickoff = MagicMock(side_effect=[Exception("Model NOT_FOUND"), "ok-with-fallback"])

    result, used_model, switched = _run(kickoff, "gemini/gemini-2.5-flash-latest")

    assert result == "ok-with-fallback"
    assert used_model == "gemini/gemini-2.5-flash"
    assert switched == ["gemini/gemini-2.5-flash"]


def test_flash_lite_falls_back_after_empty_retry():
    kickoff = MagicMock(side_effect=[Exception(EMPTY), Exception(EMPTY), "ok-with-flash"])

    result, used_model, switched = _run(kickoff, "gemini/gemini-2.5-flash-lite")

    assert result == "ok-with-flash"
    assert used_model == "gemini/gemini-2.5-flash"
    assert kickoff.call_count == 3


def test_raises_unhandled_failure():
    kickoff = MagicMock(side_effect=Exception("some unhandled failure"))

    with pytest.raises(Exception, match="some unhandled failure"):
        _run(kickoff, "gemini/gemini-2.5-pro")
