from ..client import GithubException
from ..resource import Resource
from ..schema import Attribute, Schema, SET, STRING
from ..validation import Matches

TOPIC_PATTERN = r'[a-z0-9][a-z0-9-]{0,49}'


class RepositoryTopics(Resource):
    name = 'repository_topics'
    schema = Schema('Creates and manages the topics on a repository', {
        'id': Attribute(STRING, 'The repository name.', computed=True),
        'repository': Attribute(STRING, 'The name of the repository. The name is not case sensitive.',
                                required=True, force_new=True),
        'topics': Attribute(SET, 'An array of topics to add to the repository.', required=True, element=STRING,
                            validators=[Matches(TOPIC_PATTERN, 'must include only lowercase alphanumeric characters or hyphens and cannot start with a hyphen and consist of 50 characters or less')]),
    })

    def topics_path(self, client, repository):
        return 'repos/{}/{}/topics'.format(client.owner, repository)

    def write_topics(self, client, repository, topics, summary):
        try:
            client.put(self.name, self.topics_path(client, repository), {'names': sorted(topics)})
        except GithubException as err:
            self.fail(summary, err)

    def create(self, client, plan):
        record = self.new_record(plan)
        self.write_topics(client, record['repository'], record['topics'], 'Unable to Create Repository Topics')
        record['id'] = record['repository']
        return self.read(client, record)

    def read(self, client, state):
        record = dict(state)
        repository = record['id']
        topics = self.read_or_remove(client, record, 'Unable to Read Repository Topics',
                                     lambda: client.get_json(self.name, self.topics_path(client, repository)))
        if topics is None:
            return record

        record['repository'] = repository
        record['topics'] = sorted(topics.get('names') or [])
        return record

    def update(self, client, plan, state):
        record = self.new_record(plan)
        record['id'] = state['id']
        self.write_topics(client, record['repository'], record['topics'], 'Unable to Update Repository Topics')
        return self.read(client, record)

    def delete(self, client, state):
        self.write_topics(client, state['id'], [], 'Unable to Delete Repository Topics')
