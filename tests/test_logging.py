import json
import os
import tempfile
import unittest
from unittest.mock import MagicMock, patch

import provider_github
from provider_github import main
from provider_github.client import BadCredentialsException


class TestLogging(unittest.TestCase):

    def failing_client(self):
        client = MagicMock()
        client.latest_request = {'url': 'https://api.github.com/app/installations/1/access_tokens', 'method': 'post'}
        client.latest_response = MagicMock(status_code=500, text=json.dumps({
            "token": "secret_token_123",
            "expires_at": "2025-02-05T23:40:15Z",
            "permissions": {"members": "read"}
        }))
        return client

    @patch('provider_github.logger')
    @patch('provider_github.configure_provider')
    def test_masks_token_in_error_logging(self, mock_configure, mock_logger):
        mock_configure.return_value = self.failing_client()
        failing_plan = MagicMock(side_effect=Exception("Test error"))

        with patch.dict(provider_github.COMMANDS, {'plan': failing_plan}):
            with self.assertRaises(SystemExit):
                main(['plan', '--state', 'state.json', '--declarations', 'declarations.json'])

        log_lines = [c[0][0] for c in mock_logger.critical.call_args_list]
        self.assertIn('Response Data:', log_lines)
        response_log = log_lines[log_lines.index('Response Data:') + 1]
        self.assertIn('"token": "<TOKEN>"', response_log)
        self.assertNotIn('secret_token_123', response_log)
        self.assertIn('Response Code: 500', log_lines)

    @patch('provider_github.logger')
    @patch('provider_github.configure_provider')
    def test_bad_credentials(self, mock_configure, mock_logger):
        mock_configure.side_effect = BadCredentialsException('HTTP-error-code: 401')

        with self.assertRaises(SystemExit) as ctx:
            main(['refresh', '--state', 'state.json'])

        self.assertEqual(ctx.exception.code, 1)
        self.assertIn('Authentication Error: Invalid GitHub credentials.',
                      [c[0][0] for c in mock_logger.critical.call_args_list])

    @patch('provider_github.logger')
    def test_reports_every_configuration_error(self, mock_logger):
        declarations = {'resource': {'github_repository_topics': {'t': {'topics': ['UPPER']}}}}
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'declarations.json')
            with open(path, 'w') as f:
                json.dump(declarations, f)
            with self.assertRaises(SystemExit):
                main(['validate', '--declarations', path])

        logged = [c[0][1] for c in mock_logger.critical.call_args_list if len(c[0]) > 1]
        self.assertEqual(len(logged), 2)
        self.assertTrue(all(line.startswith('github_repository_topics.t: ') for line in logged))

    @patch('builtins.print')
    def test_discover_prints_catalog(self, mock_print):
        main(['discover'])
        catalog = json.loads(mock_print.call_args[0][0])
        self.assertEqual(len(catalog['streams']), 17)

    def test_redacting_filter_is_installed(self):
        self.assertIn(provider_github.redactor, provider_github.logger.filters)
