import singer

from ..client import GithubException
from ..resource import Resource, reconcile_drift
from ..schema import Attribute, Schema, INTEGER, SET, STRING
from ..validation import OneOf, SecretName
from .secrets import encrypted_payload, secret_value_attributes

logger = singer.get_logger()


class OrganizationSecret(Resource):
    kind = None

    def __init__(self):
        attributes = {
            'id': Attribute(STRING, 'The name of the secret.', computed=True),
            'secret_name': Attribute(STRING, 'Name of the secret.', required=True, force_new=True,
                                     validators=[SecretName()]),
            'visibility': Attribute(STRING, "Configures the access that repositories have to the organization secret. Must be one of 'all', 'private' or 'selected'.",
                                    required=True, force_new=True,
                                    validators=[OneOf('all', 'private', 'selected')]),
            'selected_repository_ids': Attribute(SET, "An array of repository ids that can access the organization secret. Only used with visibility 'selected'.",
                                                 optional=True, force_new=True, element=INTEGER),
        }
        attributes.update(secret_value_attributes(self.kind))
        self.schema = Schema(
            'Creates and manages a {} secret within a GitHub organization'.format(self.kind),
            attributes,
            exactly_one_of=[('encrypted_value', 'plaintext_value')],
        )

    @property
    def name(self):
        return '{}_organization_secret'.format(self.kind)

    def validate_config(self, config):
        if config.get('selected_repository_ids') and config.get('visibility') != 'selected':
            return ["Attribute 'selected_repository_ids' can only be set when 'visibility' is 'selected'"]
        return []

    def secret_path(self, client, secret_name):
        return 'orgs/{}/{}/secrets/{}'.format(client.owner, self.kind, secret_name)

    def create(self, client, plan):
        self.require_organization(client)
        record = self.new_record(plan)
        secret_name = record['secret_name']

        try:
            body = encrypted_payload(client, self.name,
                                     'orgs/{}/{}/secrets/public-key'.format(client.owner, self.kind),
                                     record)
            body['visibility'] = record['visibility']
            if record['visibility'] == 'selected':
                body['selected_repository_ids'] = sorted(record.get('selected_repository_ids') or [])
            client.put(self.name, self.secret_path(client, secret_name), body)
        except GithubException as err:
            self.fail('Unable to Create {} Organization Secret'.format(self.kind.title()), err)

        record['id'] = secret_name
        logger.debug('created GitHub %s organization secret %s', self.kind, secret_name)
        return self.read(client, record)

    def read(self, client, state):
        self.require_organization(client)
        record = dict(state)
        secret_name = record['id']
        summary = 'Unable to Read {} Organization Secret'.format(self.kind.title())

        secret = self.read_or_remove(client, record, summary,
                                     lambda: client.get_json(self.name, self.secret_path(client, secret_name)))
        if secret is None:
            return record

        selected_repository_ids = None
        if secret.get('visibility') == 'selected':
            try:
                repositories = client.get_all_pages(self.name, self.secret_path(client, secret_name) + '/repositories',
                                                    items_key='repositories')
            except GithubException as err:
                self.fail(summary, err)
            selected_repository_ids = sorted(repo['id'] for repo in repositories)

        record['secret_name'] = secret_name
        record['visibility'] = secret.get('visibility')
        record['selected_repository_ids'] = selected_repository_ids
        record['created_at'] = secret.get('created_at')
        return reconcile_drift(record, 'updated_at', secret.get('updated_at'))

    def delete(self, client, state):
        try:
            client.delete(self.name, self.secret_path(client, state['id']))
        except GithubException as err:
            self.fail('Unable to Delete {} Organization Secret'.format(self.kind.title()), err)


class ActionsOrganizationSecret(OrganizationSecret):
    kind = 'actions'


class DependabotOrganizationSecret(OrganizationSecret):
    kind = 'dependabot'
