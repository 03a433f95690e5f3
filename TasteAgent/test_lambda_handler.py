"""
Unit tests for the HTTP adapter.

Tests verify that:
- Every response carries CORS headers and the {success, data|error} envelope
- Validation failures answer 400, missing credentials and parse failures 500
- Preflight answers 200 and other wrong methods 405
- A full taste request returns seeds and every recommendation category
"""

import json
import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import requests

from TasteAgent import lambda_handler as handler_module
from TasteAgent.config import Settings, RECOMMENDATION_CATEGORIES, EXPOSED_FUNCTIONS
from TasteAgent.lambda_handler import (
    ecosystem_handler,
    health_handler,
    lambda_handler,
    plan_day_handler,
    taste_handler
)
from TasteAgent.main import TastePipeline
from monitoring import LLMMonitor


def _completion(content):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=100, completion_tokens=50)
    )


def _event(body, method='POST', path='/api/taste'):
    return {
        'httpMethod': method,
        'path': path,
        'body': body if isinstance(body, str) or body is None else json.dumps(body)
    }


def _qloo_ok(url, headers=None, params=None, timeout=None):
    response = MagicMock()
    response.raise_for_status.return_value = None
    entity_type = dict(params)['filter.type']
    response.json.return_value = {
        'results': {'entities': [{'entity_id': f'{entity_type}-{i}', 'name': f'Entity {i}'} for i in range(3)]}
    }
    return response


SEED_REPLY = json.dumps({
    'seeds': [
        {'text': 'jazz lounges', 'category': 'activity', 'confidence': 0.9, 'searchTerms': ['jazz']},
        {'text': 'ramen', 'category': 'food', 'confidence': 1.4}
    ],
    'vibeContext': {'mood': 'cozy'},
    'culturalInsights': {'primaryThemes': ['comfort']}
})


class HandlerTestCase(unittest.TestCase):

    def setUp(self):
        self.llm = MagicMock()
        self.pipeline = TastePipeline(
            settings=Settings(openai_api_key='sk-test', qloo_api_key='qloo-test'),
            llm_client=self.llm,
            monitor=LLMMonitor()
        )

    def body(self, response):
        return json.loads(response['body'])

    def assertCors(self, response):
        self.assertEqual(response['headers']['Access-Control-Allow-Origin'], '*')
        self.assertIn('POST', response['headers']['Access-Control-Allow-Methods'])


class TestTasteHandler(HandlerTestCase):

    @patch('TasteAgent.tools.requests.get')
    def test_success_shape(self, mock_get):
        mock_get.side_effect = _qloo_ok
        self.llm.chat.completions.create.return_value = _completion(SEED_REPLY)

        response = taste_handler(_event({'vibe': 'cozy jazz night', 'city': 'Chicago'}), None, self.pipeline)

        self.assertEqual(response['statusCode'], 200)
        self.assertCors(response)
        body = self.body(response)
        self.assertTrue(body['success'])
        data = body['data']
        self.assertEqual(data['city'], 'Chicago')
        self.assertEqual(data['vibe'], 'cozy jazz night')
        self.assertEqual(set(data['recommendations'].keys()), set(RECOMMENDATION_CATEGORIES.keys()))
        self.assertEqual(data['seeds'][1]['confidence'], 1.0)
        self.assertEqual(data['vibeContext']['mood'], 'cozy')

        signals = [v for k, v in mock_get.call_args.kwargs['params'] if k == 'signal.interests.query']
        self.assertEqual(signals, ['jazz', 'ramen'])
        self.assertEqual(self.pipeline.monitor.get_summary()['by_operation']['seed_extraction']['count'], 1)

    def test_missing_fields(self):
        response = taste_handler(_event({'city': 'Chicago'}), None, self.pipeline)
        self.assertEqual(response['statusCode'], 400)
        self.assertCors(response)
        self.assertEqual(self.body(response), {'success': False, 'error': 'Missing required fields: vibe'})

        response = taste_handler(_event({'vibe': '   '}), None, self.pipeline)
        self.assertEqual(self.body(response)['error'], 'Missing required fields: vibe and city')

    def test_malformed_json(self):
        response = taste_handler(_event('{"vibe": '), None, self.pipeline)
        self.assertEqual(response['statusCode'], 400)
        self.assertFalse(self.body(response)['success'])

    @patch('TasteAgent.tools.requests.get')
    def test_missing_keys_before_any_call(self, mock_get):
        for settings, message in (
            (Settings(qloo_api_key='qloo-test'), 'OpenAI API key not configured'),
            (Settings(openai_api_key='sk-test'), 'Qloo API key not configured')
        ):
            pipeline = TastePipeline(settings=settings, llm_client=self.llm, monitor=LLMMonitor())
            response = taste_handler(_event({'vibe': 'jazz', 'city': 'Chicago'}), None, pipeline)

            self.assertEqual(response['statusCode'], 500)
            self.assertEqual(self.body(response)['error'], message)

        self.llm.chat.completions.create.assert_not_called()
        mock_get.assert_not_called()

    @patch('TasteAgent.tools.requests.get')
    def test_unparseable_seeds(self, mock_get):
        self.llm.chat.completions.create.return_value = _completion('Jazz is great!')

        response = taste_handler(_event({'vibe': 'jazz', 'city': 'Chicago'}), None, self.pipeline)

        self.assertEqual(response['statusCode'], 500)
        self.assertIn('Failed to parse seed extraction response', self.body(response)['error'])
        mock_get.assert_not_called()

    @patch('TasteAgent.tools.requests.get')
    def test_all_categories_failing_is_still_success(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError('down')
        self.llm.chat.completions.create.return_value = _completion(SEED_REPLY)

        response = taste_handler(_event({'vibe': 'jazz', 'city': 'Chicago'}), None, self.pipeline)

        self.assertEqual(response['statusCode'], 200)
        recommendations = self.body(response)['data']['recommendations']
        self.assertTrue(all(items == [] for items in recommendations.values()))

    def test_preflight_and_wrong_method(self):
        response = taste_handler(_event(None, method='OPTIONS'), None, self.pipeline)
        self.assertEqual(response['statusCode'], 200)
        self.assertEqual(response['body'], '')
        self.assertCors(response)

        response = taste_handler(_event(None, method='GET'), None, self.pipeline)
        self.assertEqual(response['statusCode'], 405)
        self.assertEqual(self.body(response)['error'], 'Method not allowed')


class TestPlanDayHandler(HandlerTestCase):

    def test_empty_selection(self):
        for body in ({}, {'selectedItems': []}, {'selectedItems': [{'category': 'food'}]},
                     {'selectedItems': [{'name': ['Cafe']}]}, {'selectedItems': [{'name': '  '}]}):
            response = plan_day_handler(_event(body, path='/api/plan-day'), None, self.pipeline)
            self.assertEqual(response['statusCode'], 400)

    def test_fallback_plan_is_success(self):
        self.llm.chat.completions.create.return_value = _completion('not json')
        items = [{'name': 'Museum', 'category': 'activity'}, {'name': 'Cafe', 'category': 'food'}]

        response = plan_day_handler(_event({'selectedItems': items, 'city': 'Chicago'}, path='/api/plan-day'),
                                    None, self.pipeline)

        self.assertEqual(response['statusCode'], 200)
        data = self.body(response)['data']
        self.assertTrue(data['usedFallback'])
        self.assertEqual(data['totalItems'], 2)
        self.assertEqual(len(data['dayPlan']), 2)
        self.assertEqual(data['estimatedTotalDuration'], 180)


class TestEcosystemHandler(HandlerTestCase):

    ENTITIES = {'music': [{'name': 'Khruangbin'}], 'books': [{'name': 'The Road'}]}

    def test_requires_entities(self):
        response = ecosystem_handler(_event({'vibe': 'v', 'city': 'c'}, path='/api/ecosystem-analysis'),
                                     None, self.pipeline)
        self.assertEqual(response['statusCode'], 400)

    def test_unavailable_analysis_is_error(self):
        self.llm.chat.completions.create.return_value = _completion('')
        response = ecosystem_handler(
            _event({'vibe': 'v', 'city': 'c', 'entities': self.ENTITIES}, path='/api/ecosystem-analysis'),
            None, self.pipeline
        )
        self.assertEqual(response['statusCode'], 500)
        self.assertFalse(self.body(response)['success'])

    def test_loose_connections_are_tolerated(self):
        self.llm.chat.completions.create.return_value = _completion(json.dumps({
            'aiConnections': [], 'aiThemes': [], 'aiInsights': [], 'ecosystemNarrative': ''
        }))
        response = ecosystem_handler(
            _event({'vibe': 'v', 'city': 'c', 'entities': self.ENTITIES, 'connections': ['x <-> y']},
                   path='/api/ecosystem-analysis'),
            None, self.pipeline
        )
        self.assertEqual(response['statusCode'], 200)
        data = self.body(response)['data']
        self.assertEqual(len(data['connections']), 1)
        self.assertTrue(data['themes'])

    def test_success_includes_heuristics(self):
        self.llm.chat.completions.create.return_value = _completion(json.dumps({
            'aiConnections': [], 'aiThemes': [], 'aiInsights': [], 'ecosystemNarrative': 'Quiet.'
        }))
        response = ecosystem_handler(
            _event({'vibe': 'v', 'city': 'c', 'entities': self.ENTITIES}, path='/api/ecosystem-analysis'),
            None, self.pipeline
        )
        self.assertEqual(response['statusCode'], 200)
        data = self.body(response)['data']
        self.assertEqual(data['aiConnections'], [])
        self.assertEqual(data['ecosystemNarrative'], 'Quiet.')
        self.assertEqual(len(data['connections']), 1)
        self.assertIn('ecosystemScore', data)


class TestRouting(HandlerTestCase):

    def test_health(self):
        response = lambda_handler(_event(None, method='GET', path='/api/health'), None, self.pipeline)
        self.assertEqual(response['statusCode'], 200)
        body = self.body(response)
        self.assertTrue(body['success'])
        self.assertEqual(body['data']['status'], 'ok')
        self.assertTrue(body['data']['openaiKey'])
        self.assertEqual(body['data']['functions'], EXPOSED_FUNCTIONS)

    def test_health_rejects_post(self):
        response = health_handler(_event({}, path='/api/health'), None, self.pipeline)
        self.assertEqual(response['statusCode'], 405)

    def test_unknown_route(self):
        response = lambda_handler(_event({}, path='/api/nope'), None, self.pipeline)
        self.assertEqual(response['statusCode'], 404)
        self.assertCors(response)

    def test_default_pipeline_is_shared(self):
        with patch.object(handler_module, '_pipeline', self.pipeline):
            response = lambda_handler(_event({'city': 'Chicago'}, path='/api/taste/'), None)
        self.assertEqual(response['statusCode'], 400)


if __name__ == '__main__':
    unittest.main()
