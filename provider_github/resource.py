'''
Base classes shared by every resource and data source type.

A resource is a stateless adapter: the shared GithubClient is passed into each operation, and a
record (a plain dict keyed by attribute name) goes in and comes back out. Clearing a record's
`id` tells the lifecycle that the remote object is gone, or was changed behind our back, and has
to be created again.
'''
import singer

from .client import GithubException, NotFoundException
from .errors import ConfigurationError, ProviderError, UnsupportedOperationError

logger = singer.get_logger()

PROVIDER_TYPE_NAME = 'github'


def remove_from_state(record, reason, **fields):
    logger.info('Removing %s from state because %s %s', record.get('id'), reason,
                ' '.join('{}={}'.format(k, v) for k, v in fields.items()))
    record['id'] = None
    return record


def reconcile_drift(record, marker, observed):
    '''
    Timestamp based drift detection. With no stored marker the resource was only just created and
    the observed value is adopted. A stored marker that no longer matches means the object was
    changed outside of this provider, and since the value itself cannot be read back the record is
    dropped so it gets recreated instead of silently accepting the change.
    '''
    stored = record.get(marker)
    if stored is not None and stored != observed:
        logger.info('%s has been externally updated in GitHub (state %s=%s, github %s=%s)',
                    record.get('id'), marker, stored, marker, observed)
        record['id'] = None
    elif stored is None:
        record[marker] = observed
    return record


class Resource:
    name = None
    schema = None

    @property
    def type_name(self):
        return '{}_{}'.format(PROVIDER_TYPE_NAME, self.name)

    def validate(self, config):
        errors = self.schema.validate(config)
        errors.extend(self.validate_config(config))
        if errors:
            raise ConfigurationError(['{}: {}'.format(self.type_name, e) for e in errors])
        return self.schema.apply_defaults(config)

    def validate_config(self, config):
        return []

    def new_record(self, config):
        record = self.schema.empty_record()
        record.update(self.schema.apply_defaults(config))
        return record

    def fail(self, summary, err, detail=None):
        raise ProviderError(summary, detail or str(err)) from err

    def require_organization(self, client):
        if not client.is_organization:
            raise ConfigurationError('{}: This resource can only be used with an organization'.format(self.type_name))

    def create(self, client, plan):
        raise NotImplementedError

    def read(self, client, state):
        raise NotImplementedError

    def update(self, client, plan, state):
        raise UnsupportedOperationError(
            'The {} resource does not support updates. All changes require replacement.'.format(self.type_name))

    def delete(self, client, state):
        raise NotImplementedError

    def import_state(self, client, import_id):
        record = self.schema.empty_record()
        record['id'] = import_id
        return self.read(client, record)

    def read_or_remove(self, client, record, summary, fetch):
        '''
        Runs `fetch` and maps a 404 to removal from state. Any other API error is fatal.
        '''
        try:
            return fetch()
        except NotFoundException:
            remove_from_state(record, 'it no longer exists in GitHub')
            return None
        except GithubException as err:
            self.fail(summary, err)


class DataSource:
    name = None
    schema = None

    @property
    def type_name(self):
        return '{}_{}'.format(PROVIDER_TYPE_NAME, self.name)

    def validate(self, config):
        errors = self.schema.validate(config)
        errors.extend(self.validate_config(config))
        if errors:
            raise ConfigurationError(['data.{}: {}'.format(self.type_name, e) for e in errors])
        return self.schema.apply_defaults(config)

    def validate_config(self, config):
        return []

    def fail(self, summary, err, detail=None):
        raise ProviderError(summary, detail or str(err)) from err

    def read(self, client, config):
        raise NotImplementedError
