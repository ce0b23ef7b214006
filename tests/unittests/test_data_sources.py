import unittest
from unittest import mock

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from provider_github.client import GraphQLError
from provider_github.data_sources import (ActionsPublicKey, AppToken, BranchProtectionRules, Collaborators,
                                          CodespacesPublicKey, Users)
from provider_github.data_sources.users import USERS_BATCH_SIZE, build_users_query
from provider_github.errors import ConfigurationError, ProviderError
from provider_github.utils import build_checksum_id
from mock_github import FakeSession, MockResponse, make_client, next_link


def collaborator(login, id, role_name):
    return {'login': login, 'id': id, 'type': 'User', 'site_admin': False, 'role_name': role_name,
            'url': 'https://api.github.com/users/{}'.format(login),
            'html_url': 'https://github.com/{}'.format(login)}


@mock.patch('time.sleep')
class TestCollaborators(unittest.TestCase):

    def setUp(self):
        self.session = FakeSession()
        self.client = make_client(self.session)
        self.data_source = Collaborators()
        self.path = 'repos/octo-org/my-repo/collaborators'

    def test_reads_every_page_and_normalizes_permissions(self, mocked_sleep):
        self.session.add('get', self.path,
                         MockResponse(200, [collaborator('alice', 1, 'admin'), collaborator('bob', 2, 'write')],
                                      links=next_link(self.path, 2)),
                         MockResponse(200, [collaborator('carol', 3, 'read')]))
        config = self.data_source.validate({'owner': 'octo-org', 'repository': 'my-repo'})

        record = self.data_source.read(self.client, config)

        self.assertEqual(record['id'], 'octo-org/my-repo/all')
        self.assertEqual([c['login'] for c in record['collaborator']], ['alice', 'bob', 'carol'])
        self.assertEqual([c['permission'] for c in record['collaborator']], ['admin', 'push', 'pull'])
        self.assertEqual(record['collaborator'][0]['html_url'], 'https://github.com/alice')
        self.assertEqual(self.session.calls[1]['params'], {'affiliation': 'all', 'per_page': 100, 'page': 2})

    def test_permission_filter_is_part_of_id(self, mocked_sleep):
        self.session.add('get', self.path, MockResponse(200, []))
        record = self.data_source.read(self.client, {'owner': 'octo-org', 'repository': 'my-repo',
                                                     'affiliation': 'direct', 'permission': 'admin'})
        self.assertEqual(record['id'], 'octo-org/my-repo/direct/admin')
        self.assertEqual(self.session.calls[0]['params']['permission'], 'admin')

    def test_invalid_affiliation(self, mocked_sleep):
        with self.assertRaises(ConfigurationError):
            self.data_source.validate({'owner': 'o', 'repository': 'r', 'affiliation': 'everyone'})

    def test_failure_mentions_repository(self, mocked_sleep):
        with self.assertRaises(ProviderError) as ctx:
            self.data_source.read(self.client, {'owner': 'octo-org', 'repository': 'my-repo'})
        self.assertIn('octo-org/my-repo', ctx.exception.detail)


@mock.patch('time.sleep')
class TestUsers(unittest.TestCase):

    def setUp(self):
        self.session = FakeSession()
        self.client = make_client(self.session)
        self.data_source = Users()

    def test_query_shape(self, mocked_sleep):
        query = build_users_query(2)
        self.assertIn('$user0: String!, $user1: String!', query)
        self.assertIn('user1: user(login: $user1) { id login email }', query)
        self.assertIs(build_users_query(2), query)
        with self.assertRaises(ValueError):
            build_users_query(USERS_BATCH_SIZE + 1)

    def test_unknown_users_are_reported(self, mocked_sleep):
        self.session.add('post', 'graphql', MockResponse(200, {
            'data': {'user0': {'id': 'U_1', 'login': 'octocat', 'email': ''}, 'user1': None},
            'errors': [{'type': 'NOT_FOUND', 'path': ['user1'],
                        'message': "Could not resolve to a User with the login of 'ghost'."}],
        }))

        record = self.data_source.read(self.client, {'usernames': ['octocat', 'ghost']})

        self.assertEqual(record['logins'], ['octocat'])
        self.assertEqual(record['node_ids'], ['U_1'])
        self.assertEqual(record['unknown_logins'], ['ghost'])
        self.assertEqual(record['id'], build_checksum_id(['octocat', 'ghost']))
        self.assertEqual(self.session.calls[0]['body']['variables'], {'user0': 'octocat', 'user1': 'ghost'})

    def test_batches_large_lists(self, mocked_sleep):
        usernames = ['user{}'.format(i) for i in range(USERS_BATCH_SIZE + 5)]
        first = {'user{}'.format(i): {'id': 'U{}'.format(i), 'login': name, 'email': None}
                 for i, name in enumerate(usernames[:USERS_BATCH_SIZE])}
        second = {'user{}'.format(i): {'id': 'V{}'.format(i), 'login': name, 'email': None}
                  for i, name in enumerate(usernames[USERS_BATCH_SIZE:])}
        self.session.add('post', 'graphql', MockResponse(200, {'data': first}), MockResponse(200, {'data': second}))

        record = self.data_source.read(self.client, {'usernames': usernames})

        self.assertEqual(len(self.session.calls), 2)
        self.assertEqual(record['logins'], usernames)
        self.assertEqual(record['unknown_logins'], [])

    def test_other_errors_fail(self, mocked_sleep):
        self.session.add('post', 'graphql', MockResponse(200, {'errors': [{'type': 'RATE_LIMITED', 'message': 'slow down'}]}))
        with self.assertRaises(ProviderError) as ctx:
            self.data_source.read(self.client, {'usernames': ['octocat']})
        self.assertIsInstance(ctx.exception.__cause__, GraphQLError)


@mock.patch('time.sleep')
class TestAppToken(unittest.TestCase):

    def setUp(self):
        self.key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        self.pem = self.key.private_bytes(serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8,
                                          serialization.NoEncryption()).decode('utf-8')

    def test_exchanges_signed_jwt_for_installation_token(self, mocked_sleep):
        app_session = FakeSession().add('post', 'app/installations/456/access_tokens',
                                        MockResponse(201, {'token': 'ghs_installation'}))
        client = make_client(FakeSession())

        with mock.patch('provider_github.client.requests.Session', return_value=app_session):
            record = AppToken().read(client, {'app_id': '123', 'installation_id': '456',
                                              'pem_file': self.pem.replace('\n', '\\n')})

        self.assertEqual(record['token'], 'ghs_installation')
        authorization = app_session.calls[0]['session_headers']['authorization']
        self.assertTrue(authorization.startswith('Bearer '))
        claims = jwt.decode(authorization[len('Bearer '):], self.key.public_key(), algorithms=['RS256'])
        self.assertEqual(claims['iss'], '123')
        # the provider's own credentials are untouched
        self.assertEqual(client.session.headers['authorization'], 'token ghp_testtoken')

    def test_token_exchange_keeps_provider_transport_settings(self, mocked_sleep):
        client = make_client(FakeSession(), insecure=True, max_retries=5, retryable_errors=[502])

        with mock.patch('provider_github.client.GithubClient.refresh_app_token', autospec=True,
                        return_value='ghs_installation') as refresh:
            AppToken().read(client, {'app_id': '123', 'installation_id': '456', 'pem_file': self.pem})

        app_client = refresh.call_args[0][0]
        self.assertIsNot(app_client, client)
        self.assertFalse(app_client.session.verify)
        self.assertEqual(app_client.max_retries, 5)
        self.assertEqual(app_client.retryable_errors, {502})

    def test_token_is_sensitive(self, mocked_sleep):
        self.assertIn('token', AppToken().schema.sensitive_attributes)
        self.assertIn('pem_file', AppToken().schema.sensitive_attributes)


@mock.patch('time.sleep')
class TestPublicKeys(unittest.TestCase):

    def test_reads_repository_public_key(self, mocked_sleep):
        session = FakeSession().add('get', 'repos/octo-org/my-repo/actions/secrets/public-key',
                                    MockResponse(200, {'key_id': '012345', 'key': 'a2V5'}))
        record = ActionsPublicKey().read(make_client(session), {'repository': 'my-repo'})
        self.assertEqual(record['id'], '012345')
        self.assertEqual(record['key'], 'a2V5')

    def test_codespaces_path_and_failure(self, mocked_sleep):
        data_source = CodespacesPublicKey()
        self.assertEqual(data_source.type_name, 'github_codespaces_public_key')
        session = FakeSession()
        with self.assertRaises(ProviderError):
            data_source.read(make_client(session), {'repository': 'my-repo'})
        self.assertEqual(session.calls[0]['path'], 'repos/octo-org/my-repo/codespaces/secrets/public-key')


@mock.patch('time.sleep')
class TestBranchProtectionRules(unittest.TestCase):

    def page(self, patterns, has_next, cursor):
        return MockResponse(200, {'data': {'repository': {'id': 'R_1', 'branchProtectionRules': {
            'nodes': [{'pattern': p} for p in patterns],
            'pageInfo': {'hasNextPage': has_next, 'endCursor': cursor}}}}})

    def test_reads_all_pages(self, mocked_sleep):
        session = FakeSession().add('post', 'graphql', self.page(['main'], True, 'c1'), self.page(['release/*'], False, None))

        record = BranchProtectionRules().read(make_client(session), {'repository': 'my-repo'})

        self.assertEqual(record['rules'], [{'pattern': 'main'}, {'pattern': 'release/*'}])
        self.assertEqual(session.calls[1]['body']['variables'], {'owner': 'octo-org', 'name': 'my-repo', 'cursor': 'c1'})

    def test_missing_repository(self, mocked_sleep):
        session = FakeSession().add('post', 'graphql', MockResponse(200, {'data': {'repository': None}}))
        with self.assertRaises(ProviderError):
            BranchProtectionRules().read(make_client(session), {'repository': 'nope'})
