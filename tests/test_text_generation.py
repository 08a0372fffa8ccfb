import json

import httpx
import pytest

from engagement.modules.text_generation import (
    GeminiReportWriter,
    GenerationFailure,
    build_prompt,
    tone_instruction,
)

ARGS = ('Mona Adel Hassan', 3, 85.0, True, 'Mr. Adel', 'weekly', 1)


def make_writer(handler, api_key='test-key'):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return GeminiReportWriter(api_key, client=client)


def gemini_reply(text):
    return {'candidates': [{'content': {'parts': [{'text': text}]}}]}


def test_successful_generation_posts_prompt():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=gemini_reply('  Hello, guardian of Mona  '))

    writer = make_writer(handler)
    assert writer.generate(*ARGS) == 'Hello, guardian of Mona'

    request = seen[0]
    assert request.url.params['key'] == 'test-key'
    assert 'gemini-1.5-flash:generateContent' in request.url.path
    prompt = json.loads(request.content)['contents'][0]['parts'][0]['text']
    assert 'Mona Adel Hassan' in prompt
    assert 'Mr. Adel' in prompt


def test_http_error_status_raises():
    writer = make_writer(lambda request: httpx.Response(503, text='overloaded'))
    with pytest.raises(GenerationFailure):
        writer.generate(*ARGS)


def test_empty_candidate_text_raises():
    writer = make_writer(lambda request: httpx.Response(200, json=gemini_reply('   ')))
    with pytest.raises(GenerationFailure):
        writer.generate(*ARGS)


def test_malformed_body_raises():
    writer = make_writer(lambda request: httpx.Response(200, json={'candidates': []}))
    with pytest.raises(GenerationFailure):
        writer.generate(*ARGS)


def test_transport_error_raises():
    def handler(request):
        raise httpx.ConnectTimeout('timed out', request=request)

    with pytest.raises(GenerationFailure):
        make_writer(handler).generate(*ARGS)


def test_missing_api_key_never_calls_out():
    calls = []
    writer = make_writer(lambda request: calls.append(request), api_key=None)
    with pytest.raises(GenerationFailure):
        writer.generate(*ARGS)
    assert calls == []


@pytest.mark.parametrize('score,word', [
    (92, 'proud'),
    (85, 'proud'),
    (70, 'positive'),
    (55, 'gentle'),
    (49.9, 'urgent'),
])
def test_tone_follows_average_score(score, word):
    assert word in tone_instruction(score)


def test_prompt_mentions_outstanding_fees():
    prompt = build_prompt('Omar Said', 1, 40.0, False, 'Mr. Adel', 'monthly', 0)
    assert 'outstanding balance' in prompt
    assert 'monthly' in prompt
    assert 'absent' in prompt
