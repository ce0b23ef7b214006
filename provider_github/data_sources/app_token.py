import singer

from ..client import GithubClient, GithubException
from ..resource import DataSource
from ..schema import Attribute, Schema, STRING

logger = singer.get_logger()


def normalize_pem(pem):
    # PEM blocks need real new lines; some platforms cannot carry them in environment variables,
    # so a literal \n is accepted as well.
    return pem.replace('\\n', '\n')


class AppToken(DataSource):
    name = 'app_token'
    schema = Schema('Generate a GitHub APP JWT.', {
        'id': Attribute(STRING, 'The ID of the data source.', computed=True),
        'app_id': Attribute(STRING, 'GitHub App ID.', required=True),
        'installation_id': Attribute(STRING, 'GitHub App Installation ID.', required=True),
        'pem_file': Attribute(STRING, 'GitHub App private key in PEM format.', required=True, sensitive=True),
        'token': Attribute(STRING, 'The generated token from the credentials.', computed=True, sensitive=True),
    })

    def read(self, client, config):
        app_id = config['app_id']
        installation_id = config['installation_id']
        logger.debug('Generating GitHub App token for app %s installation %s', app_id, installation_id)

        # A separate session keeps the provider's own credentials untouched
        app_client = GithubClient(base_url=client.base_url, insecure=not client.session.verify,
                                  read_delay_ms=0, write_delay_ms=0,
                                  retry_delay_ms=int(client.retry_delay * 1000), max_retries=client.max_retries,
                                  retryable_errors=client.retryable_errors)
        try:
            token = app_client.refresh_app_token(normalize_pem(config['pem_file']), app_id, installation_id)
        except GithubException as err:
            self.fail('Unable to Generate GitHub App Token', err)

        record = dict(config)
        record['id'] = 'id'
        record['token'] = token
        return record
