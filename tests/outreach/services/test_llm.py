"""Tests for outreach.services.llm — provider routing, errors, classification parsing."""
from unittest.mock import MagicMock, patch

import pytest

from outreach.services.circuit_breaker import CircuitOpenError
from outreach.services.llm import (
    complete, classify_response, generate_subject_line, parse_classification,
    ProviderUnavailable, ProviderError, Completion,
)


def _mock_chat_response(text, prompt_tokens=10, completion_tokens=5):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = text
    response.usage.prompt_tokens = prompt_tokens
    response.usage.completion_tokens = completion_tokens
    response.usage.total_tokens = prompt_tokens + completion_tokens
    return response


def _mock_anthropic_response(text):
    response = MagicMock()
    response.content = [MagicMock(text=text)]
    response.usage.input_tokens = 12
    response.usage.output_tokens = 8
    return response


class TestComplete:

    @patch('outreach.services.llm.openai_client')
    def test_openai(self, mock_client):
        mock_client.chat.completions.create.return_value = _mock_chat_response('hi there')
        result = complete('Say hi', system_prompt='Be brief')
        assert result.text == 'hi there'
        assert result.provider == 'openai'
        assert result.usage['total_tokens'] == 15
        messages = mock_client.chat.completions.create.call_args.kwargs['messages']
        assert messages[0] == {'role': 'system', 'content': 'Be brief'}

    @patch('outreach.services.llm.anthropic_client')
    def test_anthropic(self, mock_client):
        mock_client.messages.create.return_value = _mock_anthropic_response('hello')
        result = complete('Say hi', system_prompt='Be brief', provider='anthropic')
        assert result.text == 'hello'
        assert result.usage == {'prompt_tokens': 12, 'completion_tokens': 8, 'total_tokens': 20}
        assert mock_client.messages.create.call_args.kwargs['system'] == 'Be brief'

    @patch('outreach.services.llm.openai_client', None)
    def test_unconfigured_provider_unavailable(self):
        with pytest.raises(ProviderUnavailable) as exc:
            complete('x')
        assert exc.value.retryable is False

    def test_unknown_provider_unavailable(self):
        with pytest.raises(ProviderUnavailable):
            complete('x', provider='cohere')

    @patch('outreach.services.llm.openai_client')
    def test_request_failure_is_provider_error(self, mock_client):
        mock_client.chat.completions.create.side_effect = RuntimeError('502 bad gateway')
        with pytest.raises(ProviderError):
            complete('x')

    @patch('outreach.services.llm.openai_client')
    def test_open_circuit_is_provider_error(self, mock_client):
        with patch('outreach.services.llm.get_breaker') as get_breaker:
            get_breaker.return_value.call.side_effect = CircuitOpenError('openai')
            with pytest.raises(ProviderError):
                complete('x')

    @patch('outreach.services.llm.openai_client')
    def test_tracks_token_usage(self, mock_client, mock_redis):
        mock_client.chat.completions.create.return_value = _mock_chat_response('ok')
        complete('x')
        pipe = mock_redis.pipeline.return_value
        pipe.hincrby.assert_any_call('llm:tokens', 'openai:total_tokens', 15)


class TestParseClassification:

    def test_extracts_json_from_prose(self):
        text = 'Here you go:\n{"classification": "interested", "confidence": 0.8, "summary": "Keen"}'
        result = parse_classification(text)
        assert result['classification'] == 'INTERESTED'
        assert result['confidence'] == 0.8
        assert result['summary'] == 'Keen'

    @pytest.mark.parametrize('text', [
        'no json here',
        '{not valid json}',
        '{"classification": "MAYBE", "confidence": 0.9}',
        '',
    ])
    def test_falls_back_to_unclear(self, text):
        result = parse_classification(text)
        assert result['classification'] == 'UNCLEAR'
        assert result['confidence'] == 0.0

    def test_confidence_clamped(self):
        assert parse_classification('{"classification": "QUESTION", "confidence": 7}')['confidence'] == 1.0


class TestGenerators:

    def test_classify_uses_low_temperature(self):
        prospect = MagicMock(business_name='Harbor Bakery')
        with patch('outreach.services.llm.complete',
                   return_value=Completion('{"classification": "QUESTION", "confidence": 0.6}')) as mock:
            result = classify_response('How much?', prospect, ['Our note'], provider='anthropic')
        assert result['classification'] == 'QUESTION'
        assert mock.call_args.kwargs['temperature'] == 0.3
        assert mock.call_args.kwargs['provider'] == 'anthropic'

    def test_subject_line_strips_quotes(self):
        prospect = MagicMock(business_name='Harbor Bakery')
        with patch('outreach.services.llm.complete', return_value=Completion('"Fresh site idea"\n')):
            assert generate_subject_line(prospect, 'body') == 'Fresh site idea'

    def test_subject_line_fallback(self):
        prospect = MagicMock(business_name='Harbor Bakery')
        with patch('outreach.services.llm.complete', return_value=Completion('  ')):
            assert generate_subject_line(prospect, 'body') == 'Quick idea for Harbor Bakery'
