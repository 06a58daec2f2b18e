from __future__ import annotations

import pytest
from pydantic import ValidationError

from config.settings import Settings
from llm.base import json_schema_response_format


def test_realtime_defaults_match_telephony_codec():
    settings = Settings()
    assert settings.realtime_audio_format == "g711_ulaw"
    assert settings.realtime_turn_detection == "server_vad"
    assert settings.realtime_voice == "alloy"
    assert settings.realtime_temperature == 0.8
    assert "session.created" in settings.realtime_verbose_event_types


def test_llm_api_key_falls_back_to_openai_key():
    assert Settings(openai_api_key="sk-a", llm_api_key=None).effective_llm_api_key == "sk-a"
    assert Settings(openai_api_key="sk-a", llm_api_key="sk-b").effective_llm_api_key == "sk-b"


def test_realtime_temperature_is_bounded():
    with pytest.raises(ValidationError):
        Settings(realtime_temperature=2.0)


def test_json_schema_response_format_names_the_schema():
    schema = {"type": "object", "properties": {}}
    assert json_schema_response_format("customer_details_extraction", schema) == {
        "type": "json_schema",
        "json_schema": {"name": "customer_details_extraction", "schema": schema},
    }
