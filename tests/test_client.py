import asyncio

import pytest

from mission_coach.core.errors import ConfigurationError, ExhaustedRetries, ProviderError, RateLimitExceeded
from mission_coach.services.ai_coach.client import (
    EXHAUSTED_RETRIES_MESSAGE,
    NO_RESPONSE_TEXT,
    TEMPERATURE,
)
from mission_coach.services.ai_coach.rate_limiter import TokenBucket
from mission_coach.services.coaching.settings import AISettings


def test_returns_provider_reply(make_client, sleeps):
    client, provider = make_client(['Bonjour !'])
    reply = asyncio.run(client.get_response('Salut', 'Transcription', AISettings()))

    assert reply == 'Bonjour !'
    assert sleeps == []
    call = provider.calls[0]
    assert call['temperature'] == TEMPERATURE
    assert call['max_tokens'] == 600
    assert [m['role'] for m in call['messages']] == ['system', 'user']


def test_max_tokens_follow_response_length(make_client):
    client, provider = make_client(['ok'])
    asyncio.run(client.get_response('Salut', 'T', AISettings(response_length='concise')))
    assert provider.calls[0]['max_tokens'] == 300


def test_message_and_transcript_are_sanitised(make_client):
    client, provider = make_client(['ok'])
    asyncio.run(client.get_response('<b>Salut</b> @toi', 'Texte <i>brut</i>', AISettings()))

    system, user = provider.calls[0]['messages']
    assert user['content'] == 'Salut toi'
    assert system['content'].endswith('Voici la transcription à analyser: Texte brut')


def test_step_context_reaches_system_prompt(make_client):
    client, provider = make_client(['ok'])
    context = 'Étape "Valeurs" [ÉTAPE_COMPLÉTÉE]'
    asyncio.run(client.get_response('Salut', 'T', AISettings(), context))
    assert context in provider.calls[0]['messages'][0]['content']


def test_missing_choices_give_fallback_text(make_client):
    client, _ = make_client([None])
    reply = asyncio.run(client.get_response('Salut', 'T', AISettings()))
    assert reply == NO_RESPONSE_TEXT


def test_retries_then_succeeds(make_client, sleeps):
    client, provider = make_client([ProviderError('boom'), ProviderError('boom'), 'Enfin'])
    reply = asyncio.run(client.get_response('Salut', 'T', AISettings()))

    assert reply == 'Enfin'
    assert len(provider.calls) == 3
    assert sleeps == [2.0, 4.0]


def test_exhausted_retries_after_max_attempts(make_client, sleeps):
    client, provider = make_client([ProviderError('boom')] * 5, max_retries=3, base_delay=1.0)

    with pytest.raises(ExhaustedRetries) as excinfo:
        asyncio.run(client.get_response('Salut', 'T', AISettings()))

    assert excinfo.value.attempts == 3
    assert excinfo.value.message == EXHAUSTED_RETRIES_MESSAGE
    assert len(provider.calls) == 3
    # Backoff doubles each time: 2 + 4 + 8
    assert sleeps == [2.0, 4.0, 8.0]
    assert sum(sleeps) >= 1.0 * (2 + 4 + 8)


def test_error_detail_is_not_exposed(make_client):
    client, _ = make_client([ProviderError('secret upstream detail')], max_retries=1)
    with pytest.raises(ExhaustedRetries) as excinfo:
        asyncio.run(client.get_response('Salut', 'T', AISettings()))
    assert 'secret' not in excinfo.value.message
    assert isinstance(excinfo.value.__cause__, ProviderError)


def test_missing_api_key_is_retried_like_any_failure(make_client, sleeps):
    client, provider = make_client([ConfigurationError('API key is not configured')] * 2, max_retries=2)
    with pytest.raises(ExhaustedRetries):
        asyncio.run(client.get_response('Salut', 'T', AISettings()))
    assert len(provider.calls) == 2
    assert sleeps == [2.0, 4.0]


def test_rate_limit_is_not_retried(make_client, sleeps, fake_clock):
    client, provider = make_client(
        ['un', 'deux'],
        rate_limiter=TokenBucket(capacity=1, refill_ms=1000, clock=fake_clock),
    )
    asyncio.run(client.get_response('Salut', 'T', AISettings()))

    with pytest.raises(RateLimitExceeded):
        asyncio.run(client.get_response('Encore', 'T', AISettings()))

    assert len(provider.calls) == 1
    assert sleeps == []
