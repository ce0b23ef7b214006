import singer

from ..client import GithubException
from ..errors import ConfigurationError
from ..resource import Resource, remove_from_state
from ..schema import Attribute, Schema, SET, STRING
from ..utils import parse_slash_id
from ..validation import OneOf, SizeAtLeast

logger = singer.get_logger()

SINGLE_SELECT = 'single_select'
MULTI_SELECT = 'multi_select'
STRING_TYPE = 'string'
TRUE_FALSE = 'true_false'

SINGLE_VALUE_TYPES = (SINGLE_SELECT, STRING_TYPE, TRUE_FALSE)


def property_value_to_list(value):
    '''
    The API returns a plain string for single value types and a list for multi_select.
    '''
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        for item in value:
            if not isinstance(item, str):
                raise ConfigurationError('custom property value contains non-string element: {!r}'.format(item))
        return list(value)
    raise ConfigurationError("custom property value couldn't be parsed as a string or a list of strings: {!r}".format(value))


class RepositoryCustomProperty(Resource):
    name = 'repository_custom_property'
    schema = Schema('Creates and manages a specific custom property for a GitHub repository', {
        'id': Attribute(STRING, 'The ID of the repository custom property (owner/repository/property_name).', computed=True),
        'repository': Attribute(STRING, 'Name of the repository which the custom properties should be on.',
                                required=True, force_new=True),
        'property_type': Attribute(STRING, 'Type of the custom property', required=True, force_new=True,
                                   validators=[OneOf(SINGLE_SELECT, MULTI_SELECT, STRING_TYPE, TRUE_FALSE)]),
        'property_name': Attribute(STRING, 'Name of the custom property.', required=True, force_new=True),
        'property_value': Attribute(SET, 'Value of the custom property.', required=True, force_new=True,
                                    element=STRING, validators=[SizeAtLeast(1)]),
    })

    def validate_config(self, config):
        property_type = config.get('property_type')
        values = config.get('property_value')
        if property_type in SINGLE_VALUE_TYPES and isinstance(values, list) and len(values) > 1:
            return ['Property type {} accepts only a single value, but {} values were provided'.format(
                property_type, len(values))]
        return []

    def values_path(self, owner, repository):
        return 'repos/{}/{}/properties/values'.format(owner, repository)

    def create(self, client, plan):
        record = self.new_record(plan)
        repository = record['repository']
        property_name = record['property_name']
        values = list(record['property_value'])

        if record['property_type'] == MULTI_SELECT:
            value = values
        else:
            value = values[0]

        try:
            client.patch(self.name, self.values_path(client.owner, repository),
                         {'properties': [{'property_name': property_name, 'value': value}]})
        except GithubException as err:
            self.fail('Unable to Create Repository Custom Property', err)

        record['id'] = '{}/{}/{}'.format(client.owner, repository, property_name)
        logger.debug('created GitHub repository custom property %s', record['id'])
        return self.read(client, record)

    def read(self, client, state):
        record = dict(state)
        owner, repository, property_name = parse_slash_id(record['id'], 'owner', 'repository', 'property_name')
        summary = 'Unable to Read Repository Custom Property'

        properties = self.read_or_remove(client, record, summary,
                                         lambda: client.get_json(self.name, self.values_path(owner, repository)))
        if properties is None:
            return record

        wanted = [p for p in properties if p.get('property_name') == property_name]
        if not wanted or wanted[-1].get('value') is None:
            return remove_from_state(record, 'the custom property is no longer set',
                                     repository=repository, property_name=property_name)

        try:
            definitions = client.get_json(self.name, 'orgs/{}/properties/schema'.format(owner))
        except GithubException as err:
            self.fail('Unable to Read Organization Custom Properties', err)

        property_type = next((d.get('value_type') for d in definitions if d.get('property_name') == property_name), None)
        if not property_type:
            raise ConfigurationError('Unable to determine property type for custom property: {}'.format(property_name))

        record['repository'] = repository
        record['property_name'] = property_name
        record['property_type'] = property_type
        record['property_value'] = property_value_to_list(wanted[-1]['value'])
        return record

    def delete(self, client, state):
        owner, repository, property_name = parse_slash_id(state['id'], 'owner', 'repository', 'property_name')
        try:
            client.patch(self.name, self.values_path(owner, repository),
                         {'properties': [{'property_name': property_name, 'value': None}]})
        except GithubException as err:
            self.fail('Unable to Delete Repository Custom Property', err)

    def import_state(self, client, import_id):
        parse_slash_id(import_id, 'owner', 'repository', 'property_name')
        return super().import_state(client, import_id)
