import unittest

from provider_github.errors import ConfigurationError
from provider_github.resources import ActionsSecret, OrganizationRuleset, RepositoryCustomProperty
from provider_github.schema import Attribute, Schema, INTEGER, LIST, OBJECT, STRING
from provider_github.validation import (Base64, ConflictsWith, ExactlyOneOf, LengthBetween, Matches, OneOf,
                                        SecretName, SizeAtLeast, SizeAtMost)


class TestRules(unittest.TestCase):

    def test_one_of(self):
        rule = OneOf('all', 'private', 'selected')
        self.assertEqual(rule.validate('visibility', 'all', {}), [])
        self.assertEqual(len(rule.validate('visibility', 'public', {})), 1)

    def test_conflicts_with(self):
        rule = ConflictsWith('plaintext_value')
        self.assertEqual(rule.validate('encrypted_value', 'abc', {'encrypted_value': 'abc'}), [])
        errors = rule.validate('encrypted_value', 'abc', {'encrypted_value': 'abc', 'plaintext_value': 'x'})
        self.assertEqual(errors, ["Attribute 'encrypted_value' cannot be specified when 'plaintext_value' is specified"])

    def test_exactly_one_of(self):
        rule = ExactlyOneOf('encrypted_value', 'plaintext_value')
        self.assertEqual(rule.validate('', None, {'plaintext_value': 'x'}), [])
        self.assertEqual(len(rule.validate('', None, {})), 1)
        self.assertEqual(len(rule.validate('', None, {'plaintext_value': 'x', 'encrypted_value': 'eA=='})), 1)

    def test_base64(self):
        self.assertEqual(Base64().validate('v', 'c2VjcmV0', {}), [])
        self.assertEqual(len(Base64().validate('v', 'not base64!', {})), 1)

    def test_sizes_and_lengths(self):
        self.assertEqual(len(SizeAtLeast(1).validate('v', [], {})), 1)
        self.assertEqual(SizeAtLeast(1).validate('v', ['a'], {}), [])
        self.assertEqual(len(SizeAtMost(1).validate('v', ['a', 'b'], {})), 1)
        self.assertEqual(len(LengthBetween(1, 3).validate('v', '', {})), 1)
        self.assertEqual(len(LengthBetween(1, 3).validate('v', 'abcd', {})), 1)
        self.assertEqual(LengthBetween(1, 3).validate('v', 'abc', {}), [])

    def test_matches_checks_every_element(self):
        rule = Matches(r'^[a-z]+$', 'must be lowercase')
        self.assertEqual(len(rule.validate('topics', ['ok', 'Bad', 'AlsoBad'], {})), 2)

    def test_secret_name(self):
        rule = SecretName()
        self.assertEqual(rule.validate('secret_name', 'DEPLOY_KEY', {}), [])
        self.assertEqual(len(rule.validate('secret_name', '1KEY', {})), 1)
        self.assertEqual(len(rule.validate('secret_name', 'github_token', {})), 1)
        self.assertEqual(len(rule.validate('secret_name', 'GITHUB_TOKEN-1', {})), 2)
        self.assertEqual(len(rule.validate('secret_name', 'DEPLOY_KEY\n', {})), 1)

    def test_matches_whole_value(self):
        rule = Matches(r'[a-z]+', 'must be lowercase')
        self.assertEqual(rule.validate('topics', ['ok'], {}), [])
        self.assertEqual(len(rule.validate('topics', ['ok\n', 'ok-'], {})), 2)


class TestSchemaValidation(unittest.TestCase):

    def setUp(self):
        self.schema = Schema('test', {
            'id': Attribute(STRING, computed=True),
            'name': Attribute(STRING, required=True, validators=[LengthBetween(1, 5)]),
            'count': Attribute(INTEGER, optional=True),
            'items': Attribute(LIST, optional=True, attributes={
                'kind': Attribute(STRING, required=True, validators=[OneOf('a', 'b')]),
            }),
            'nested': Attribute(OBJECT, optional=True, attributes={
                'flag': Attribute(STRING, optional=True, default='x'),
            }),
        })

    def test_reports_every_violation(self):
        errors = self.schema.validate({
            'id': 'set-by-user',
            'name': 'much too long',
            'count': 'three',
            'items': [{'kind': 'c'}, {}],
            'unknown': True,
        })
        self.assertEqual(len(errors), 6)

    def test_booleans_are_not_integers(self):
        self.assertEqual(len(self.schema.validate({'name': 'ok', 'count': True})), 1)

    def test_defaults_applied_to_nested_objects(self):
        self.assertEqual(self.schema.apply_defaults({'name': 'ok', 'nested': {}})['nested'], {'flag': 'x'})


class TestResourceValidation(unittest.TestCase):

    def test_secret_requires_exactly_one_value(self):
        resource = ActionsSecret()
        with self.assertRaises(ConfigurationError) as ctx:
            resource.validate({'repository': 'r', 'secret_name': 'S'})
        self.assertIn('Exactly one of these attributes must be configured', str(ctx.exception))

    def test_secret_conflicting_values_never_validate(self):
        resource = ActionsSecret()
        with self.assertRaises(ConfigurationError) as ctx:
            resource.validate({'repository': 'r', 'secret_name': 'GITHUB_S',
                               'plaintext_value': 'x', 'encrypted_value': 'eA=='})
        # both conflict messages, the exactly-one-of message and the secret name prefix error
        self.assertEqual(len(ctx.exception.errors), 4)
        self.assertTrue(all(e.startswith('github_actions_secret: ') for e in ctx.exception.errors))

    def test_single_value_custom_property(self):
        resource = RepositoryCustomProperty()
        with self.assertRaises(ConfigurationError):
            resource.validate({'repository': 'r', 'property_name': 'p', 'property_type': 'string',
                               'property_value': ['a', 'b']})
        config = resource.validate({'repository': 'r', 'property_name': 'p', 'property_type': 'multi_select',
                                    'property_value': ['a', 'b']})
        self.assertEqual(config['property_value'], ['a', 'b'])

    def test_ruleset_conditions(self):
        resource = OrganizationRuleset()
        config = {
            'name': 'main', 'target': 'branch', 'enforcement': 'active', 'rules': {'deletion': True},
            'conditions': {'repository_id': [1], 'repository_name': {'include': ['~ALL'], 'exclude': []}},
        }
        with self.assertRaises(ConfigurationError) as ctx:
            resource.validate(config)
        self.assertEqual(len(ctx.exception.errors), 2)
