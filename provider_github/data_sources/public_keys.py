import singer

from ..client import GithubException
from ..resource import DataSource
from ..schema import Attribute, Schema, STRING

logger = singer.get_logger()


class RepositoryPublicKey(DataSource):
    '''
    The public key a repository's secrets are sealed with. `kind` selects the secrets store:
    actions, dependabot or codespaces.
    '''
    kind = None
    label = None

    def __init__(self):
        self.schema = Schema('Get information on a GitHub {} Public Key.'.format(self.label), {
            'id': Attribute(STRING, 'The ID of the public key.', computed=True),
            'repository': Attribute(STRING, 'The name of the repository.', required=True),
            'key_id': Attribute(STRING, 'The ID of the public key.', computed=True),
            'key': Attribute(STRING, 'The public key value.', computed=True),
        })

    @property
    def name(self):
        return '{}_public_key'.format(self.kind)

    def read(self, client, config):
        repository = config['repository']
        logger.debug('Reading GitHub %s public key for %s/%s', self.label, client.owner, repository)

        path = 'repos/{}/{}/{}/secrets/public-key'.format(client.owner, repository, self.kind)
        try:
            public_key = client.get_json(self.name, path)
        except GithubException as err:
            self.fail('Unable to Read GitHub {} Public Key'.format(self.label), err)

        record = dict(config)
        record['id'] = public_key.get('key_id')
        record['key_id'] = public_key.get('key_id')
        record['key'] = public_key.get('key')
        return record


class ActionsPublicKey(RepositoryPublicKey):
    kind = 'actions'
    label = 'Actions'


class DependabotPublicKey(RepositoryPublicKey):
    kind = 'dependabot'
    label = 'Dependabot'


class CodespacesPublicKey(RepositoryPublicKey):
    kind = 'codespaces'
    label = 'Codespaces'
