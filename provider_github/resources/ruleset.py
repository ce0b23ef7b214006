import singer

from ..client import GithubException, NotFoundException, NotModifiedError
from ..errors import ConfigurationError
from ..resource import Resource, remove_from_state
from ..schema import Attribute, Schema, BOOLEAN, INTEGER, LIST, OBJECT, STRING
from ..validation import LengthBetween, OneOf, SizeAtLeast

logger = singer.get_logger()

# Rules that carry no parameters: present when true, absent otherwise
TOGGLE_RULES = ('creation', 'update', 'deletion', 'required_linear_history',
                'required_signatures', 'non_fast_forward')

PULL_REQUEST_PARAMETERS = {
    'dismiss_stale_reviews_on_push': False,
    'require_code_owner_review': False,
    'require_last_push_approval': False,
    'required_approving_review_count': 0,
    'required_review_thread_resolution': False,
}

PATTERN_ATTRIBUTES = {
    'include': Attribute(LIST, 'Array of names or patterns to include. One of these patterns must match for the condition to pass.',
                         required=True, element=STRING),
    'exclude': Attribute(LIST, 'Array of names or patterns to exclude. The condition will not pass if any of these patterns match.',
                         required=True, element=STRING),
}


def rules_to_api(rules):
    result = []
    rules = rules or {}
    for name in TOGGLE_RULES:
        if rules.get(name):
            result.append({'type': name})

    pull_request = rules.get('pull_request')
    if pull_request:
        parameters = {key: default if pull_request.get(key) is None else pull_request[key]
                      for key, default in PULL_REQUEST_PARAMETERS.items()}
        result.append({'type': 'pull_request', 'parameters': parameters})

    status_checks = rules.get('required_status_checks')
    if status_checks:
        checks = []
        for check in status_checks.get('required_check') or []:
            item = {'context': check['context']}
            if check.get('integration_id'):
                item['integration_id'] = check['integration_id']
            checks.append(item)
        result.append({'type': 'required_status_checks', 'parameters': {
            'required_status_checks': checks,
            'strict_required_status_checks_policy': bool(status_checks.get('strict_required_status_checks_policy')),
        }})
    return result


def rules_from_api(rules):
    result = {name: False for name in TOGGLE_RULES}
    result['pull_request'] = None
    result['required_status_checks'] = None
    for rule in rules or []:
        rule_type = rule.get('type')
        parameters = rule.get('parameters') or {}
        if rule_type in TOGGLE_RULES:
            result[rule_type] = True
        elif rule_type == 'pull_request':
            result['pull_request'] = {key: parameters.get(key, default) for key, default in PULL_REQUEST_PARAMETERS.items()}
        elif rule_type == 'required_status_checks':
            result['required_status_checks'] = {
                'required_check': [{'context': c.get('context'), 'integration_id': c.get('integration_id')}
                                   for c in parameters.get('required_status_checks') or []],
                'strict_required_status_checks_policy': parameters.get('strict_required_status_checks_policy', False),
            }
        else:
            logger.debug('Ignoring unsupported ruleset rule type %s', rule_type)
    return result


def conditions_to_api(conditions):
    if not conditions:
        return None
    result = {}
    if conditions.get('ref_name'):
        result['ref_name'] = {
            'include': list(conditions['ref_name']['include']),
            'exclude': list(conditions['ref_name']['exclude']),
        }
    if conditions.get('repository_name'):
        repository_name = conditions['repository_name']
        result['repository_name'] = {
            'include': list(repository_name['include']),
            'exclude': list(repository_name['exclude']),
            'protected': bool(repository_name.get('protected')),
        }
    if conditions.get('repository_id'):
        result['repository_id'] = {'repository_ids': list(conditions['repository_id'])}
    return result


def conditions_from_api(conditions):
    if not conditions:
        return None
    ref_name = conditions.get('ref_name')
    repository_name = conditions.get('repository_name')
    repository_id = conditions.get('repository_id')
    return {
        'ref_name': {'include': ref_name.get('include') or [], 'exclude': ref_name.get('exclude') or []} if ref_name else None,
        'repository_name': {
            'include': repository_name.get('include') or [],
            'exclude': repository_name.get('exclude') or [],
            'protected': repository_name.get('protected', False),
        } if repository_name else None,
        'repository_id': list(repository_id.get('repository_ids') or []) if repository_id else None,
    }


class OrganizationRuleset(Resource):
    name = 'organization_ruleset'
    schema = Schema('Creates a GitHub organization ruleset.', {
        'id': Attribute(STRING, 'The ruleset ID.', computed=True),
        'name': Attribute(STRING, 'The name of the ruleset.', required=True, validators=[LengthBetween(1, 100)]),
        'target': Attribute(STRING, 'Possible values are `branch`, `tag` and `push`.', required=True,
                            validators=[OneOf('branch', 'tag', 'push')]),
        'enforcement': Attribute(STRING, 'Possible values for Enforcement are `disabled`, `active`, `evaluate`.',
                                 required=True, validators=[OneOf('disabled', 'active', 'evaluate')]),
        'bypass_actors': Attribute(LIST, 'The actors that can bypass the rules in this ruleset.', optional=True, attributes={
            'actor_id': Attribute(INTEGER, 'The ID of the actor that can bypass a ruleset.', required=True),
            'actor_type': Attribute(STRING, 'The type of actor that can bypass a ruleset.', required=True,
                                    validators=[OneOf('RepositoryRole', 'Team', 'Integration', 'OrganizationAdmin', 'DeployKey')]),
            'bypass_mode': Attribute(STRING, 'When the specified actor can bypass the ruleset.', required=True,
                                     validators=[OneOf('always', 'pull_request')]),
        }),
        'conditions': Attribute(OBJECT, 'Parameters for an organization ruleset condition.', optional=True, attributes={
            'ref_name': Attribute(OBJECT, 'Parameters for a repository ruleset ref name condition.', optional=True,
                                  attributes=PATTERN_ATTRIBUTES),
            'repository_name': Attribute(OBJECT, 'Parameters for repository name condition.', optional=True,
                                         attributes=dict(PATTERN_ATTRIBUTES, protected=Attribute(
                                             BOOLEAN, 'Whether renaming of target repositories is prevented.',
                                             optional=True, default=False))),
            'repository_id': Attribute(LIST, 'The repository IDs that the ruleset applies to.', optional=True,
                                       element=INTEGER, validators=[SizeAtLeast(1)]),
        }),
        'rules': Attribute(OBJECT, 'Rules within the ruleset.', required=True, attributes=dict(
            {name: Attribute(BOOLEAN, 'Enable the {} rule.'.format(name), optional=True, default=False) for name in TOGGLE_RULES},
            pull_request=Attribute(OBJECT, 'Require all commits be made to a non-target branch and submitted via a pull request before they can be merged.',
                                   optional=True, attributes={
                                       key: Attribute(INTEGER if key == 'required_approving_review_count' else BOOLEAN,
                                                      optional=True, default=default)
                                       for key, default in PULL_REQUEST_PARAMETERS.items()
                                   }),
            required_status_checks=Attribute(OBJECT, 'Choose which status checks must pass before branches can be merged into a branch that matches this rule.',
                                             optional=True, attributes={
                                                 'required_check': Attribute(LIST, 'Status checks that are required.', required=True, attributes={
                                                     'context': Attribute(STRING, 'The status check context name that must be present on the commit.', required=True),
                                                     'integration_id': Attribute(INTEGER, 'The optional integration ID that this status check must originate from.', optional=True),
                                                 }),
                                                 'strict_required_status_checks_policy': Attribute(BOOLEAN, optional=True, default=False),
                                             }),
        )),
        'node_id': Attribute(STRING, 'GraphQL global node id for use with v4 API.', computed=True),
        'ruleset_id': Attribute(INTEGER, 'GitHub ID for the ruleset.', computed=True),
        'etag': Attribute(STRING, computed=True),
    })

    def validate_config(self, config):
        conditions = config.get('conditions')
        if not isinstance(conditions, dict) or not conditions:
            return []
        errors = []
        if bool(conditions.get('repository_name')) == bool(conditions.get('repository_id')):
            errors.append('conditions: exactly one of `repository_name` or `repository_id` must be set')
        if config.get('target') != 'push' and not conditions.get('ref_name'):
            errors.append('conditions: `ref_name` is required for {} targets'.format(config.get('target')))
        return errors

    def rulesets_path(self, client):
        return 'orgs/{}/rulesets'.format(client.owner)

    def build_ruleset(self, record):
        ruleset = {
            'name': record['name'],
            'target': record['target'],
            'enforcement': record['enforcement'],
            'bypass_actors': [
                {'actor_id': a['actor_id'], 'actor_type': a['actor_type'], 'bypass_mode': a['bypass_mode']}
                for a in record.get('bypass_actors') or []
            ],
            'rules': rules_to_api(record.get('rules')),
        }
        conditions = conditions_to_api(record.get('conditions'))
        if conditions:
            ruleset['conditions'] = conditions
        return ruleset

    def apply_ruleset(self, record, ruleset):
        record['ruleset_id'] = ruleset['id']
        record['id'] = str(ruleset['id'])
        record['node_id'] = ruleset.get('node_id')
        record['name'] = ruleset.get('name')
        record['target'] = ruleset.get('target')
        record['enforcement'] = ruleset.get('enforcement')
        record['bypass_actors'] = [
            {'actor_id': a.get('actor_id'), 'actor_type': a.get('actor_type'), 'bypass_mode': a.get('bypass_mode')}
            for a in ruleset.get('bypass_actors') or []
        ] or None
        record['conditions'] = conditions_from_api(ruleset.get('conditions'))
        record['rules'] = rules_from_api(ruleset.get('rules'))
        return record

    def create(self, client, plan):
        self.require_organization(client)
        record = self.new_record(plan)
        logger.debug('Creating organization ruleset: %s', record['name'])
        try:
            ruleset = client.post(self.name, self.rulesets_path(client), self.build_ruleset(record)).json()
        except GithubException as err:
            self.fail('Error creating organization ruleset', err)

        record['ruleset_id'] = ruleset['id']
        record['id'] = str(ruleset['id'])
        return self.read(client, record)

    def read(self, client, state):
        record = dict(state)
        ruleset_id = record.get('ruleset_id') or record['id']
        headers = {'If-None-Match': record['etag']} if record.get('etag') else None

        try:
            response = client.get(self.name, '{}/{}'.format(self.rulesets_path(client), ruleset_id), headers=headers)
        except NotModifiedError:
            return record
        except NotFoundException:
            return remove_from_state(record, 'the organization ruleset was not found')
        except GithubException as err:
            self.fail('Error reading organization ruleset', err)

        if response.headers.get('ETag'):
            record['etag'] = response.headers['ETag']
        return self.apply_ruleset(record, response.json())

    def update(self, client, plan, state):
        record = self.new_record(plan)
        record['id'] = state['id']
        record['ruleset_id'] = state['ruleset_id']
        logger.debug('Updating organization ruleset: %s', record['ruleset_id'])
        try:
            ruleset = client.put(self.name, '{}/{}'.format(self.rulesets_path(client), record['ruleset_id']),
                                 self.build_ruleset(record)).json()
        except GithubException as err:
            self.fail('Error updating organization ruleset', err)

        record['etag'] = None
        return self.apply_ruleset(record, ruleset) if ruleset.get('id') else self.read(client, record)

    def delete(self, client, state):
        logger.debug('Deleting organization ruleset: %s', state['ruleset_id'])
        try:
            client.delete(self.name, '{}/{}'.format(self.rulesets_path(client), state['ruleset_id']))
        except GithubException as err:
            self.fail('Error deleting organization ruleset', err)

    def import_state(self, client, import_id):
        try:
            ruleset_id = int(import_id)
        except ValueError:
            raise ConfigurationError('Could not parse ruleset ID: {!r}'.format(import_id)) from None
        if ruleset_id == 0:
            raise ConfigurationError('`ruleset_id` must be present')

        logger.debug('Importing organization ruleset with ID: %s', ruleset_id)
        record = self.schema.empty_record()
        record['id'] = str(ruleset_id)
        record['ruleset_id'] = ruleset_id
        return self.read(client, record)
