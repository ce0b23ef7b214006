import singer

from ..client import GithubException, NotFoundException, NotModifiedError
from ..errors import ConfigurationError
from ..resource import Resource, remove_from_state
from ..schema import Attribute, Schema, BOOLEAN, OBJECT, SET, STRING
from ..utils import parse_slash_id

logger = singer.get_logger()

# GitHub never returns a webhook secret, only this placeholder
MASKED_SECRET = '********'


def hook_config_from_api(config, declared):
    if not config:
        return None
    secret = config.get('secret')
    if secret is not None and declared and declared.get('secret') is not None:
        secret = declared['secret']
    return {
        'url': config.get('url'),
        'content_type': config.get('content_type'),
        'secret': secret,
        'insecure_ssl': str(config.get('insecure_ssl', '0')) in ('1', 'true', 'True'),
    }


class RepositoryWebhook(Resource):
    name = 'repository_webhook'
    schema = Schema('Creates and manages repository webhooks within GitHub organizations or personal accounts', {
        'id': Attribute(STRING, 'The ID of the webhook.', computed=True),
        'repository': Attribute(STRING, 'The repository of the webhook.', required=True, force_new=True),
        'events': Attribute(SET, 'A list of events which should trigger the webhook', required=True, element=STRING),
        'configuration': Attribute(OBJECT, 'Configuration for the webhook.', optional=True, attributes={
            'url': Attribute(STRING, 'The URL of the webhook.', required=True, sensitive=True),
            'content_type': Attribute(STRING, 'The content type for the payload. Valid values are either form or json.', optional=True),
            'secret': Attribute(STRING, 'The shared secret for the webhook.', optional=True, sensitive=True),
            'insecure_ssl': Attribute(BOOLEAN, 'Insecure SSL boolean toggle. Defaults to false.', optional=True, default=False),
        }),
        'url': Attribute(STRING, 'URL of the webhook', computed=True),
        'active': Attribute(BOOLEAN, "Indicate if the webhook should receive events. Defaults to 'true'.",
                            optional=True, computed=True, default=True),
        'etag': Attribute(STRING, 'An etag representing the webhook object.', computed=True),
    })

    def hooks_path(self, client, repository):
        return 'repos/{}/{}/hooks'.format(client.owner, repository)

    def hook_path(self, client, record):
        try:
            hook_id = int(record['id'])
        except (TypeError, ValueError):
            raise ConfigurationError('Could not parse webhook ID: {!r}'.format(record['id'])) from None
        return '{}/{}'.format(self.hooks_path(client, record['repository']), hook_id)

    def build_hook(self, record):
        hook = {
            'name': 'web',
            'events': sorted(record['events']),
            'active': record.get('active', True),
        }
        configuration = record.get('configuration')
        if configuration:
            config = {
                'url': configuration['url'],
                'insecure_ssl': '1' if configuration.get('insecure_ssl') else '0',
            }
            if configuration.get('content_type'):
                config['content_type'] = configuration['content_type']
            if configuration.get('secret'):
                config['secret'] = configuration['secret']
            hook['config'] = config
        return hook

    def apply_hook(self, record, hook):
        record['events'] = sorted(hook.get('events') or [])
        record['active'] = hook.get('active')
        record['url'] = hook.get('url')
        record['configuration'] = hook_config_from_api(hook.get('config'), record.get('configuration'))
        return record

    def create(self, client, plan):
        record = self.new_record(plan)
        try:
            hook = client.post(self.name, self.hooks_path(client, record['repository']), self.build_hook(record)).json()
        except GithubException as err:
            self.fail('Error creating repository webhook', err)

        record['id'] = str(hook['id'])
        return self.apply_hook(record, hook)

    def read(self, client, state):
        record = dict(state)
        path = self.hook_path(client, record)
        headers = {'If-None-Match': record['etag']} if record.get('etag') else None

        try:
            response = client.get(self.name, path, headers=headers)
        except NotModifiedError:
            return record
        except NotFoundException:
            return remove_from_state(record, 'it no longer exists in GitHub')
        except GithubException as err:
            self.fail('Error reading repository webhook', err)

        record['etag'] = response.headers.get('ETag')
        return self.apply_hook(record, response.json())

    def update(self, client, plan, state):
        record = self.new_record(plan)
        record['id'] = state['id']
        path = self.hook_path(client, record)
        try:
            client.patch(self.name, path, self.build_hook(record))
        except GithubException as err:
            self.fail('Error updating repository webhook', err)

        record['etag'] = None
        return self.read(client, record)

    def delete(self, client, state):
        try:
            client.delete(self.name, self.hook_path(client, state))
        except NotFoundException:
            logger.info('Repository webhook %s already removed', state['id'])
        except GithubException as err:
            self.fail('Error deleting repository webhook', err)

    def import_state(self, client, import_id):
        repository, hook_id = parse_slash_id(import_id, 'repository', 'hook_id')
        record = self.schema.empty_record()
        record['id'] = hook_id
        record['repository'] = repository
        return self.read(client, record)
