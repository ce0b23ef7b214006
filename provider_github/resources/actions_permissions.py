import singer

from ..client import GithubException
from ..resource import Resource
from ..schema import Attribute, Schema, BOOLEAN, INTEGER, OBJECT, SET, STRING
from ..validation import OneOf

logger = singer.get_logger()


class ActionsOrganizationPermissions(Resource):
    name = 'actions_organization_permissions'
    schema = Schema('Creates and manages Actions permissions within a GitHub organization', {
        'id': Attribute(STRING, 'The ID of the organization.', computed=True),
        'enabled_repositories': Attribute(STRING, "The policy that controls the repositories in the organization that are allowed to run GitHub Actions. Can be one of: 'all', 'none', or 'selected'.",
                                          required=True, validators=[OneOf('all', 'none', 'selected')]),
        'allowed_actions': Attribute(STRING, "The permissions policy that controls the actions that are allowed to run. Can be one of: 'all', 'local_only', or 'selected'.",
                                     optional=True, validators=[OneOf('all', 'local_only', 'selected')]),
        'allowed_actions_config': Attribute(OBJECT, "Sets the actions that are allowed in an organization. Only available when 'allowed_actions' = 'selected'",
                                            optional=True, attributes={
            'github_owned_allowed': Attribute(BOOLEAN, 'Whether GitHub-owned actions are allowed in the organization.', required=True),
            'verified_allowed': Attribute(BOOLEAN, 'Whether actions in GitHub Marketplace from verified creators are allowed.', optional=True),
            'patterns_allowed': Attribute(SET, 'Specifies a list of string-matching patterns to allow specific action(s).', optional=True, element=STRING),
        }),
        'enabled_repositories_config': Attribute(OBJECT, "Sets the list of selected repositories that are enabled for GitHub Actions in an organization. Only available when 'enabled_repositories' = 'selected'.",
                                                 optional=True, attributes={
            'repository_ids': Attribute(SET, 'List of repository IDs to enable for GitHub Actions.', required=True, element=INTEGER),
        }),
    })

    def validate_config(self, config):
        errors = []
        if config.get('enabled_repositories') == 'selected' and not config.get('enabled_repositories_config'):
            errors.append("enabled_repositories_config must be specified when enabled_repositories is 'selected'")
        if config.get('allowed_actions_config') and config.get('allowed_actions') != 'selected':
            errors.append("allowed_actions_config is only available when allowed_actions is 'selected'")
        return errors

    def permissions_path(self, org):
        return 'orgs/{}/actions/permissions'.format(org)

    def write_permissions(self, client, record, summary):
        org = client.owner
        body = {'enabled_repositories': record['enabled_repositories']}
        if record.get('allowed_actions'):
            body['allowed_actions'] = record['allowed_actions']

        try:
            client.put(self.name, self.permissions_path(org), body)

            config = record.get('allowed_actions_config')
            if record.get('allowed_actions') == 'selected' and config:
                logger.debug('Allowed actions config is set')
                allowed = {'github_owned_allowed': config['github_owned_allowed']}
                if config.get('verified_allowed') is not None:
                    allowed['verified_allowed'] = config['verified_allowed']
                if config.get('patterns_allowed') is not None:
                    allowed['patterns_allowed'] = sorted(config['patterns_allowed'])
                client.put(self.name, self.permissions_path(org) + '/selected-actions', allowed)

            if record['enabled_repositories'] == 'selected':
                repository_ids = sorted(record['enabled_repositories_config']['repository_ids'])
                client.put(self.name, self.permissions_path(org) + '/repositories',
                           {'selected_repository_ids': repository_ids})
        except GithubException as err:
            self.fail(summary, err)

    def create(self, client, plan):
        self.require_organization(client)
        record = self.new_record(plan)
        self.write_permissions(client, record, 'Error setting organization actions permissions')
        record['id'] = client.owner
        return self.read(client, record)

    def read(self, client, state):
        self.require_organization(client)
        record = dict(state)
        org = record['id']
        summary = 'Error reading organization actions permissions'

        permissions = self.read_or_remove(client, record, summary,
                                          lambda: client.get_json(self.name, self.permissions_path(org)))
        if permissions is None:
            return record

        record['allowed_actions'] = permissions.get('allowed_actions')
        record['enabled_repositories'] = permissions.get('enabled_repositories')

        try:
            # Only track the selected actions config when the user manages it, or on import
            declared_config = state.get('allowed_actions_config')
            if permissions.get('allowed_actions') == 'selected' and (declared_config or state.get('allowed_actions') is None):
                allowed = client.get_json(self.name, self.permissions_path(org) + '/selected-actions')
                record['allowed_actions_config'] = {
                    'github_owned_allowed': allowed.get('github_owned_allowed'),
                    'verified_allowed': allowed.get('verified_allowed'),
                    'patterns_allowed': sorted(allowed.get('patterns_allowed') or []),
                }
            else:
                record['allowed_actions_config'] = None

            if permissions.get('enabled_repositories') == 'selected':
                repositories = client.get_all_pages(self.name, self.permissions_path(org) + '/repositories',
                                                    items_key='repositories')
                record['enabled_repositories_config'] = {
                    'repository_ids': sorted(repo['id'] for repo in repositories),
                } if repositories else None
            else:
                record['enabled_repositories_config'] = None
        except GithubException as err:
            self.fail(summary, err)

        return record

    def update(self, client, plan, state):
        self.require_organization(client)
        record = self.new_record(plan)
        record['id'] = state['id']
        self.write_permissions(client, record, 'Error updating organization actions permissions')
        return self.read(client, record)

    def delete(self, client, state):
        self.require_organization(client)
        # Reset to default permissions (all allowed actions, all repositories)
        try:
            client.put(self.name, self.permissions_path(client.owner),
                       {'allowed_actions': 'all', 'enabled_repositories': 'all'})
        except GithubException as err:
            self.fail('Error deleting organization actions permissions', err)
