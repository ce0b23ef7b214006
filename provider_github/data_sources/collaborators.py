import singer

from ..client import GithubException
from ..resource import DataSource
from ..schema import Attribute, Schema, BOOLEAN, INTEGER, LIST, STRING
from ..utils import get_permission_normalized
from ..validation import OneOf

logger = singer.get_logger()

URL_FIELDS = ('url', 'html_url', 'followers_url', 'following_url', 'gists_url', 'starred_url',
              'subscriptions_url', 'organizations_url', 'repos_url', 'events_url', 'received_events_url')

COLLABORATOR_ATTRIBUTES = dict(
    {
        'login': Attribute(STRING, 'The login name of the collaborator.', computed=True),
        'id': Attribute(INTEGER, 'The ID of the collaborator.', computed=True),
    },
    **{field: Attribute(STRING, computed=True) for field in URL_FIELDS},
    type=Attribute(STRING, 'The type of the collaborator (User or Organization).', computed=True),
    site_admin=Attribute(BOOLEAN, 'Whether the collaborator is a site administrator.', computed=True),
    permission=Attribute(STRING, 'The permission level of the collaborator.', computed=True),
)


class Collaborators(DataSource):
    '''
    https://docs.github.com/en/rest/collaborators/collaborators#list-repository-collaborators
    '''
    name = 'collaborators'
    schema = Schema('Get the collaborators for a given repository.', {
        'id': Attribute(STRING, 'The ID of the data source.', computed=True),
        'owner': Attribute(STRING, 'The owner of the repository.', required=True),
        'repository': Attribute(STRING, 'The name of the repository.', required=True),
        'affiliation': Attribute(STRING, 'Filter collaborators by their affiliation. Can be one of: all, direct, outside.',
                                 optional=True, computed=True, default='all',
                                 validators=[OneOf('all', 'direct', 'outside')]),
        'permission': Attribute(STRING, 'Filter collaborators by their permission level. Can be one of: pull, triage, push, maintain, admin.',
                                optional=True, computed=True,
                                validators=[OneOf('pull', 'triage', 'push', 'maintain', 'admin')]),
        'collaborator': Attribute(LIST, 'List of collaborators for the repository.', computed=True,
                                  attributes=COLLABORATOR_ATTRIBUTES),
    })

    def read(self, client, config):
        owner = config['owner']
        repo = config['repository']
        affiliation = config.get('affiliation') or 'all'
        permission = config.get('permission') or ''

        logger.debug('Reading GitHub collaborators for %s/%s (affiliation=%s, permission=%s)',
                     owner, repo, affiliation, permission)

        params = {'affiliation': affiliation}
        if permission:
            params['permission'] = permission

        try:
            collaborators = client.get_all_pages(self.name, 'repos/{}/{}/collaborators'.format(owner, repo), params)
        except GithubException as err:
            self.fail('Unable to Read GitHub Collaborators', err,
                      'An unexpected error occurred while reading collaborators for repository {}/{}: {}'.format(owner, repo, err))

        record = dict(config)
        if permission:
            record['id'] = '{}/{}/{}/{}'.format(owner, repo, affiliation, permission)
        else:
            record['id'] = '{}/{}/{}'.format(owner, repo, affiliation)
        record['affiliation'] = affiliation
        record['permission'] = permission
        record['collaborator'] = [
            dict(
                {field: c.get(field) for field in ('login', 'id') + URL_FIELDS + ('type', 'site_admin')},
                permission=get_permission_normalized(c.get('role_name')),
            )
            for c in collaborators
        ]
        logger.debug('Successfully read %s GitHub collaborators', len(record['collaborator']))
        return record
