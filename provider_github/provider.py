import os

import singer
from singer import metadata

from .client import DEFAULT_BASE_URL, GithubClient
from .data_sources import DATA_SOURCE_TYPES
from .errors import ConfigurationError
from .resources import RESOURCE_TYPES
from .schema import populate_metadata

logger = singer.get_logger()

APP_AUTH_KEYS = ['id', 'installation_id', 'pem_file']

ENV_FALLBACKS = {
    'token': 'GITHUB_TOKEN',
    'owner': 'GITHUB_OWNER',
    'base_url': 'GITHUB_BASE_URL',
}

APP_AUTH_ENV_FALLBACKS = {
    'id': 'GITHUB_APP_ID',
    'installation_id': 'GITHUB_APP_INSTALLATION_ID',
    'pem_file': 'GITHUB_APP_PEM_FILE',
}

RESOURCES = {resource.type_name: resource for resource in (cls() for cls in RESOURCE_TYPES)}
DATA_SOURCES = {data_source.type_name: data_source for data_source in (cls() for cls in DATA_SOURCE_TYPES)}


def get_resource(type_name):
    if type_name not in RESOURCES:
        raise ConfigurationError('The provider does not support resource type {!r}'.format(type_name))
    return RESOURCES[type_name]


def get_data_source(type_name):
    if type_name not in DATA_SOURCES:
        raise ConfigurationError('The provider does not support data source {!r}'.format(type_name))
    return DATA_SOURCES[type_name]


def resolve_config(config, environ=None):
    '''
    Fills in the provider configuration from the environment where the config file is silent and
    folds the deprecated `organization` key into `owner`.
    '''
    environ = os.environ if environ is None else environ
    resolved = dict(config or {})

    if not resolved.get('owner') and resolved.get('organization'):
        logger.warning('The "organization" argument is deprecated, use "owner" instead')
        resolved['owner'] = resolved['organization']
    resolved.pop('organization', None)

    for key, env_name in ENV_FALLBACKS.items():
        if not resolved.get(key) and environ.get(env_name):
            resolved[key] = environ[env_name]

    app_auth = dict(resolved.pop('app_auth', None) or {})
    if app_auth or any(environ.get(name) for name in APP_AUTH_ENV_FALLBACKS.values()):
        for key, env_name in APP_AUTH_ENV_FALLBACKS.items():
            if not app_auth.get(key) and environ.get(env_name):
                app_auth[key] = environ[env_name]
        resolved['app_auth'] = app_auth

    resolved.setdefault('base_url', DEFAULT_BASE_URL)
    return resolved


def configure_provider(config, redactor=None, session=None, environ=None):
    '''
    Builds the one GithubClient every resource and data source operation is given. A GitHub App
    configuration takes precedence over a token.
    '''
    config = resolve_config(config, environ)

    client = GithubClient(
        base_url=config['base_url'],
        token=config.get('token'),
        owner=config.get('owner'),
        insecure=config.get('insecure', False),
        read_delay_ms=config.get('read_delay_ms', 0),
        write_delay_ms=config.get('write_delay_ms', 1000),
        retry_delay_ms=config.get('retry_delay_ms', 1000),
        max_retries=config.get('max_retries', 3),
        retryable_errors=config.get('retryable_errors'),
        session=session,
    )
    logger.info('Using GitHub API URL %s', client.api_url)

    if 'app_auth' in config:
        app_auth = config['app_auth']
        singer.utils.check_config(app_auth, APP_AUTH_KEYS)
        pem = app_auth['pem_file'].replace('\\n', '\n')
        token = client.refresh_app_token(pem, app_auth['id'], app_auth['installation_id'])
        if redactor:
            redactor.add_token(pem)
            redactor.add_token(token)
    elif redactor:
        redactor.add_token(config.get('token'))

    if client.anonymous:
        logger.info('No token configured; requests are made anonymously')

    client.configure_owner()
    if client.owner:
        logger.info('Managing resources for %s %s', 'organization' if client.is_organization else 'user', client.owner)
    return client


def catalog_entry(kind, type_name, schema):
    return {
        'stream': type_name,
        'tap_stream_id': type_name,
        'kind': kind,
        'description': schema.description,
        'schema': schema.to_json_schema(),
        'metadata': metadata.to_list(populate_metadata(schema)),
        'key_properties': ['id'],
    }


def get_catalog():
    entries = []
    for type_name, resource in RESOURCES.items():
        entries.append(catalog_entry('resource', type_name, resource.schema))
    for type_name, data_source in DATA_SOURCES.items():
        entries.append(catalog_entry('data', type_name, data_source.schema))

    # This minimizes diffs when there are changes
    entries.sort(key=lambda val: (val['kind'], val['stream']))
    return {'streams': entries}
