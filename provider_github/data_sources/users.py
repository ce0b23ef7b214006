import functools

import singer

from ..client import GithubException, GraphQLError
from ..resource import DataSource
from ..schema import Attribute, Schema, LIST, STRING
from ..utils import build_checksum_id

logger = singer.get_logger()

# Aliased user lookups are sent in batches so the query shape stays bounded
USERS_BATCH_SIZE = 100

UNRESOLVED_USER_MESSAGE = 'Could not resolve to a User with the login of'


@functools.lru_cache(maxsize=None)
def build_users_query(count):
    '''
    Returns the GraphQL document that resolves `count` logins in one round trip, using the aliases
    user0..user<count-1> bound to variables of the same name. The shape only depends on `count`,
    which is at most USERS_BATCH_SIZE.
    '''
    if not 0 < count <= USERS_BATCH_SIZE:
        raise ValueError('users query batch size must be between 1 and {}'.format(USERS_BATCH_SIZE))
    labels = ['user{}'.format(i) for i in range(count)]
    variables = ', '.join('${}: String!'.format(label) for label in labels)
    selections = '\n'.join('  {0}: user(login: ${0}) {{ id login email }}'.format(label) for label in labels)
    return 'query({}) {{\n{}\n}}'.format(variables, selections)


def unresolved_only(errors):
    return all(err.get('type') == 'NOT_FOUND' or UNRESOLVED_USER_MESSAGE in err.get('message', '')
               for err in errors)


class Users(DataSource):
    name = 'users'
    schema = Schema('Get information about multiple GitHub users.', {
        'id': Attribute(STRING, 'The ID of the data source.', computed=True),
        'usernames': Attribute(LIST, 'List of usernames to lookup.', required=True, element=STRING),
        'logins': Attribute(LIST, 'List of found user logins.', computed=True, element=STRING),
        'emails': Attribute(LIST, 'List of found user emails.', computed=True, element=STRING),
        'node_ids': Attribute(LIST, 'List of found user node IDs.', computed=True, element=STRING),
        'unknown_logins': Attribute(LIST, 'List of usernames that could not be found.', computed=True, element=STRING),
    })

    def lookup(self, client, usernames):
        found = {}
        for start in range(0, len(usernames), USERS_BATCH_SIZE):
            batch = usernames[start:start + USERS_BATCH_SIZE]
            variables = {'user{}'.format(i): username for i, username in enumerate(batch)}
            response = client.graphql(self.name, build_users_query(len(batch)), variables)

            errors = response.get('errors')
            if errors and not unresolved_only(errors):
                raise GraphQLError('GraphQL query failed: {}'.format(errors[0].get('message')), response)

            data = response.get('data') or {}
            for i, username in enumerate(batch):
                user = data.get('user{}'.format(i))
                if user and user.get('login'):
                    found[start + i] = user
        return found

    def read(self, client, config):
        usernames = list(config['usernames'])
        logger.debug('Reading %s GitHub users', len(usernames))

        try:
            found = self.lookup(client, usernames) if usernames else {}
        except GithubException as err:
            self.fail('Unable to Query GitHub Users', err)

        record = dict(config)
        record['logins'] = []
        record['emails'] = []
        record['node_ids'] = []
        record['unknown_logins'] = []
        for index, username in enumerate(usernames):
            user = found.get(index)
            if user:
                record['logins'].append(user['login'])
                record['emails'].append(user.get('email') or '')
                record['node_ids'].append(user.get('id'))
            else:
                record['unknown_logins'].append(username)

        record['id'] = build_checksum_id(usernames)
        logger.debug('Found %s GitHub users, %s unknown', len(record['logins']), len(record['unknown_logins']))
        return record
