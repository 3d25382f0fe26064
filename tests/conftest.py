"""Shared fixtures for call-transcriber tests."""

import pytest

from call_transcriber.settings import (
    AnalysisSettings,
    KnowlaritySettings,
    OpenAISettings,
    TranscriptionSettings,
    ZohoSettings,
)


@pytest.fixture
def zoho_settings() -> ZohoSettings:
    return ZohoSettings(
        accounts_url="https://accounts.zoho.com",
        client_id="client-id",
        client_secret="client-secret",
        refresh_token="refresh-token",
        api_domain="https://www.zohoapis.com",
        module="Calls",
        transcript_field="Description",
        analysis_field="AI_Analysis",
        token_skew_seconds=300.0,
        timeout=5.0,
        max_update_retries=2,
    )


@pytest.fixture
def knowlarity_settings() -> KnowlaritySettings:
    return KnowlaritySettings(
        base_url="https://kpi.knowlarity.com",
        api_key="kn-key",
        auth_token="kn-token",
        channel="Basic",
        timeout=5.0,
        reauth_domains=("phonebridge.zoho.com",),
    )


@pytest.fixture
def openai_settings() -> OpenAISettings:
    return OpenAISettings(api_key="sk-test", organization=None, base_url=None)


@pytest.fixture
def transcription_settings() -> TranscriptionSettings:
    return TranscriptionSettings(
        provider="mock",
        model="whisper-1",
        default_language=None,
        default_translate=False,
        timeout=10.0,
    )


@pytest.fixture
def analysis_settings() -> AnalysisSettings:
    return AnalysisSettings(
        enabled=True,
        model="gpt-4o-mini",
        max_input_chars=16000,
        max_output_chars=1200,
        temperature=0.3,
        max_tokens=600,
        timeout=10.0,
    )

