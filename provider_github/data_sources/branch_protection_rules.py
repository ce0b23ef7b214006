import singer

from ..client import GithubException
from ..resource import DataSource
from ..schema import Attribute, Schema, LIST, STRING
from ..utils import camel_to_snake_dict

logger = singer.get_logger()

BRANCH_PROTECTION_RULES_QUERY = '''
query($owner: String!, $name: String!, $cursor: String) {
  repository(owner: $owner, name: $name) {
    id
    branchProtectionRules(first: 100, after: $cursor) {
      nodes {
        pattern
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
  }
}
'''


class BranchProtectionRules(DataSource):
    name = 'branch_protection_rules'
    schema = Schema('Get information about a repository branch protection rules.', {
        'id': Attribute(STRING, 'The ID of the data source.', computed=True),
        'repository': Attribute(STRING, 'The name of the repository.', required=True),
        'rules': Attribute(LIST, 'List of branch protection rules.', computed=True, attributes={
            'pattern': Attribute(STRING, 'Identifies the protection rule pattern.', computed=True),
        }),
    })

    def read(self, client, config):
        repository = config['repository']
        logger.debug('Reading GitHub branch protection rules for %s/%s', client.owner, repository)

        try:
            nodes = client.graphql_all_pages(
                self.name,
                BRANCH_PROTECTION_RULES_QUERY,
                {'owner': client.owner, 'name': repository},
                ['repository', 'branchProtectionRules'],
            )
        except GithubException as err:
            self.fail('Unable to Read GitHub Branch Protection Rules', err,
                      'An unexpected error occurred while reading branch protection rules for repository {}: {}'.format(repository, err))

        record = dict(config)
        record['id'] = repository
        record['rules'] = [{'pattern': camel_to_snake_dict(node).get('pattern')} for node in nodes]
        logger.debug('Successfully read %s GitHub branch protection rules', len(record['rules']))
        return record
