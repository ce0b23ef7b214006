import unittest
from unittest import mock

from singer import metadata

from provider_github.errors import ConfigurationError
from provider_github.provider import (configure_provider, get_catalog, get_data_source, get_resource,
                                      resolve_config)
from provider_github.utils import RedactingFilter
from mock_github import FakeSession, MockResponse


class TestResolveConfig(unittest.TestCase):

    def test_environment_fallbacks(self):
        config = resolve_config({}, {'GITHUB_TOKEN': 'ghp_env', 'GITHUB_OWNER': 'octo-org'})
        self.assertEqual(config['token'], 'ghp_env')
        self.assertEqual(config['owner'], 'octo-org')
        self.assertEqual(config['base_url'], 'https://api.github.com/')
        self.assertNotIn('app_auth', config)

    def test_config_file_wins_over_environment(self):
        config = resolve_config({'token': 'ghp_file'}, {'GITHUB_TOKEN': 'ghp_env'})
        self.assertEqual(config['token'], 'ghp_file')

    def test_organization_alias(self):
        config = resolve_config({'organization': 'octo-org'}, {})
        self.assertEqual(config['owner'], 'octo-org')
        self.assertNotIn('organization', config)

    def test_app_auth_from_environment(self):
        config = resolve_config({'app_auth': {'id': '1'}},
                                {'GITHUB_APP_INSTALLATION_ID': '2', 'GITHUB_APP_PEM_FILE': 'pem'})
        self.assertEqual(config['app_auth'], {'id': '1', 'installation_id': '2', 'pem_file': 'pem'})


@mock.patch('time.sleep')
class TestConfigureProvider(unittest.TestCase):

    def test_enterprise_server_urls(self, mocked_sleep):
        session = FakeSession().add('get', 'https://github.example.com/api/v3/orgs/octo-org',
                                    MockResponse(200, {'id': 9, 'login': 'octo-org'}))

        client = configure_provider({'token': 'ghp_x', 'owner': 'octo-org', 'base_url': 'https://github.example.com'},
                                    session=session, environ={})

        self.assertEqual(client.api_url, 'https://github.example.com/api/v3/')
        self.assertEqual(client.graphql_url, 'https://github.example.com/api/graphql')
        self.assertTrue(client.is_organization)
        self.assertEqual(client.owner_id, 9)
        self.assertEqual(session.headers['authorization'], 'token ghp_x')

    def test_user_owner_and_delays(self, mocked_sleep):
        client = configure_provider({'token': 'ghp_x', 'owner': 'octocat', 'write_delay_ms': 250,
                                     'retryable_errors': [502]},
                                    session=FakeSession(), environ={})
        self.assertFalse(client.is_organization)
        self.assertEqual(client.write_delay, 0.25)
        self.assertEqual(client.retryable_errors, {502})

    def test_registers_token_with_redactor(self, mocked_sleep):
        redactor = RedactingFilter()
        configure_provider({'token': 'ghp_secret', 'owner': 'octocat'}, redactor, session=FakeSession(), environ={})
        self.assertIn('ghp_secret', redactor.tokens)

    def test_app_auth_requires_every_key(self, mocked_sleep):
        with self.assertRaises(Exception) as ctx:
            configure_provider({'app_auth': {'id': '1'}}, session=FakeSession(), environ={})
        self.assertIn('installation_id', str(ctx.exception))

    def test_app_auth_uses_installation_token(self, mocked_sleep):
        session = FakeSession()
        with mock.patch('provider_github.client.GithubClient.refresh_app_token', return_value='ghs_inst') as refresh:
            configure_provider({'app_auth': {'id': '1', 'installation_id': '2', 'pem_file': 'line1\\nline2'},
                                'owner': 'octocat'}, session=session, environ={})
        refresh.assert_called_once_with('line1\nline2', '1', '2')


class TestRegistry(unittest.TestCase):

    def test_lookup(self):
        self.assertEqual(get_resource('github_repository_webhook').name, 'repository_webhook')
        self.assertEqual(get_data_source('github_users').name, 'users')
        with self.assertRaises(ConfigurationError):
            get_resource('github_repository')
        with self.assertRaises(ConfigurationError):
            get_data_source('github_actions_secret')

    def test_catalog(self):
        catalog = get_catalog()
        names = [s['stream'] for s in catalog['streams']]
        self.assertEqual(len(names), 17)
        self.assertIn('github_actions_secret', names)
        self.assertIn('github_branch_protection_rules', names)

        secret = next(s for s in catalog['streams'] if s['stream'] == 'github_actions_secret')
        mdata = metadata.to_map(secret['metadata'])
        self.assertTrue(metadata.get(mdata, (), 'replace-only'))
        self.assertEqual(metadata.get(mdata, (), 'table-key-properties'), ['id'])
        self.assertTrue(metadata.get(mdata, ('properties', 'plaintext_value'), 'sensitive'))
        self.assertTrue(metadata.get(mdata, ('properties', 'repository'), 'forces-replacement'))
        self.assertEqual(metadata.get(mdata, ('properties', 'id'), 'inclusion'), 'automatic')
        self.assertEqual(secret['schema']['properties']['secret_name']['type'], ['null', 'string'])

        webhook = next(s for s in catalog['streams'] if s['stream'] == 'github_repository_webhook')
        self.assertFalse(metadata.get(metadata.to_map(webhook['metadata']), (), 'replace-only'))
