import singer

from ..client import GithubException
from ..encryption import encrypt_plaintext
from ..resource import Resource, reconcile_drift
from ..schema import Attribute, Schema, STRING
from ..utils import build_two_part_id, parse_slash_id, parse_two_part_id
from ..validation import Base64, ConflictsWith, SecretName

logger = singer.get_logger()


def secret_value_attributes(kind):
    return {
        'encrypted_value': Attribute(STRING, 'Encrypted value of the secret using the GitHub public key in Base64 format.',
                                     optional=True, sensitive=True, force_new=True,
                                     validators=[Base64(), ConflictsWith('plaintext_value')]),
        'plaintext_value': Attribute(STRING, 'Plaintext value of the secret to be encrypted.',
                                     optional=True, sensitive=True, force_new=True,
                                     validators=[ConflictsWith('encrypted_value')]),
        'created_at': Attribute(STRING, "Date of '{}_secret' creation.".format(kind), computed=True),
        'updated_at': Attribute(STRING, "Date of '{}_secret' update.".format(kind), computed=True),
    }


def encrypted_payload(client, source, key_path, record):
    '''
    Fetches a fresh public key and returns the body fields for a secret write: the key id plus
    either the caller's pre-encrypted value or the sealed plaintext.
    '''
    public_key = client.get_json(source, key_path)
    if record.get('encrypted_value'):
        encrypted_value = record['encrypted_value']
    else:
        encrypted_value = encrypt_plaintext(record['plaintext_value'], public_key['key'])
    return {'encrypted_value': encrypted_value, 'key_id': public_key['key_id']}


class RepositorySecret(Resource):
    '''
    A repository level secret for Actions, Dependabot or Codespaces. The three APIs only differ in
    their path segment.
    '''
    kind = None

    def __init__(self):
        attributes = {
            'id': Attribute(STRING, 'The ID of the {} secret (repository:secret_name).'.format(self.kind), computed=True),
            'repository': Attribute(STRING, 'Name of the repository.', required=True, force_new=True),
            'secret_name': Attribute(STRING, 'Name of the secret.', required=True, force_new=True,
                                     validators=[SecretName()]),
        }
        attributes.update(secret_value_attributes(self.kind))
        self.schema = Schema(
            'Creates and manages a {} secret within a GitHub repository'.format(self.kind),
            attributes,
            exactly_one_of=[('encrypted_value', 'plaintext_value')],
        )

    @property
    def name(self):
        return '{}_secret'.format(self.kind)

    def secret_path(self, client, repository, secret_name):
        return 'repos/{}/{}/{}/secrets/{}'.format(client.owner, repository, self.kind, secret_name)

    def create(self, client, plan):
        record = self.new_record(plan)
        repository = record['repository']
        secret_name = record['secret_name']

        try:
            body = encrypted_payload(client, self.name,
                                     'repos/{}/{}/{}/secrets/public-key'.format(client.owner, repository, self.kind),
                                     record)
            client.put(self.name, self.secret_path(client, repository, secret_name), body)
        except GithubException as err:
            self.fail('Unable to Create {} Secret'.format(self.kind.title()), err)

        record['id'] = build_two_part_id(repository, secret_name)
        logger.debug('created GitHub %s secret %s', self.kind, record['id'])
        return self.read(client, record)

    def read(self, client, state):
        record = dict(state)
        repository, secret_name = parse_two_part_id(record['id'], 'repository', 'secret_name')

        secret = self.read_or_remove(client, record, 'Unable to Read {} Secret'.format(self.kind.title()),
                                     lambda: client.get_json(self.name, self.secret_path(client, repository, secret_name)))
        if secret is None:
            return record

        record['repository'] = repository
        record['secret_name'] = secret_name
        record['created_at'] = secret.get('created_at')
        return reconcile_drift(record, 'updated_at', secret.get('updated_at'))

    def delete(self, client, state):
        repository, secret_name = parse_two_part_id(state['id'], 'repository', 'secret_name')
        try:
            client.delete(self.name, self.secret_path(client, repository, secret_name))
        except GithubException as err:
            self.fail('Unable to Delete {} Secret'.format(self.kind.title()), err)
        logger.debug('deleted GitHub %s secret %s', self.kind, state['id'])

    def import_state(self, client, import_id):
        repository, secret_name = parse_slash_id(import_id, 'repository', 'secret_name')
        record = self.schema.empty_record()
        record['id'] = build_two_part_id(repository, secret_name)
        # encrypted_value and plaintext_value cannot be imported as they are not retrievable
        return self.read(client, record)


class ActionsSecret(RepositorySecret):
    kind = 'actions'


class DependabotSecret(RepositorySecret):
    kind = 'dependabot'


class CodespacesSecret(RepositorySecret):
    kind = 'codespaces'
