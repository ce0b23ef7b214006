import json
import re
import time
import urllib.parse

import jwt
import requests
import singer
import singer.metrics as metrics

logger = singer.get_logger()

DEFAULT_BASE_URL = 'https://api.github.com/'
GHEC_DATA_RESIDENCY_MATCH = re.compile(r'^https://[a-zA-Z0-9.\-]*\.ghe\.com/?$')

# Maximum items per page for GitHub API pagination
MAX_PER_PAGE = 100

DEFAULT_WRITE_DELAY_MS = 1000
DEFAULT_READ_DELAY_MS = 0
DEFAULT_RETRY_DELAY_MS = 1000
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRYABLE_ERRORS = [500, 502, 503, 504]

# Network errors (connection resets, timeouts) are retried with a linear back-off
NETWORK_MAX_RETRIES = 5
NETWORK_RETRY_WAIT = 30

class GithubException(Exception):
    server_response = None
    def __init__(self, message, server_response=None):
        super().__init__(message)
        self.server_response = server_response

class BadCredentialsException(GithubException):
    pass

class AuthException(GithubException):
    pass

class NotFoundException(GithubException):
    pass

class BadRequestException(GithubException):
    pass

class InternalServerError(GithubException):
    pass

class UnprocessableError(GithubException):
    pass

class NotModifiedError(GithubException):
    pass

class MovedPermanentlyError(GithubException):
    pass

class ConflictError(GithubException):
    pass

class GoneError(GithubException):
    pass

class RateLimitExceeded(GithubException):
    pass

class UnavailableForLegalReasonsError(GithubException):
    pass

class GraphQLError(GithubException):
    pass

ERROR_CODE_EXCEPTION_MAPPING = {
    301: {
        "raise_exception": MovedPermanentlyError,
        "message": "The resource you are looking for is moved to another URL."
    },
    304: {
        "raise_exception": NotModifiedError,
        "message": "The requested resource has not been modified since the last time you accessed it."
    },
    400:{
        "raise_exception": BadRequestException,
        "message": "The request is missing or has a bad parameter."
    },
    401: {
        "raise_exception": BadCredentialsException,
        "message": "Invalid authorization credentials."
    },
    403: {
        "raise_exception": AuthException,
        "message": "User doesn't have permission to access the resource."
    },
    404: {
        "raise_exception": NotFoundException,
        "message": "The resource you have specified cannot be found"
    },
    409: {
        "raise_exception": ConflictError,
        "message": "The request could not be completed due to a conflict with the current state of the server."
    },
    410: {
        "raise_exception": GoneError,
        "message": "The target resource is no longer available at the origin server and that this condition is likely to be permanent."
    },
    422: {
        "raise_exception": UnprocessableError,
        "message": "The request was not able to process right now."
    },
    429: {
        "raise_exception": RateLimitExceeded,
        "message": "The API rate limit has been exceeded."
    },
    451: {
        "raise_exception": UnavailableForLegalReasonsError,
        "message": "The requested resource is unavailable for legal reasons"
    },
    500: {
        "raise_exception": InternalServerError,
        "message": "An error has occurred at Github's end."
    }
}

def raise_for_error(resp, source, url):
    error_code = resp.status_code
    try:
        response_json = resp.json()
    except Exception:
        response_json = {}

    if error_code == 404:
        details = ERROR_CODE_EXCEPTION_MAPPING.get(error_code).get("message")
        message = "HTTP-error-code: 404, URL: {}. Error: {}. Please refer \'{}\' for more details." \
            .format(url, details, response_json.get("documentation_url"))
    else:
        message = "HTTP-error-code: {}, URL: {}. Error: {}".format(
            error_code, url, ERROR_CODE_EXCEPTION_MAPPING.get(error_code, {}).get("message", "Unknown Error") if response_json == {} else response_json)

    exc = ERROR_CODE_EXCEPTION_MAPPING.get(error_code, {}).get("raise_exception", GithubException)
    if error_code >= 500:
        exc = InternalServerError
    raise exc(message, response_json) from None

def calculate_seconds(epoch):
    current = time.time()
    return max(int(round((epoch - current), 0)), 0)

def rate_throttling(response):
    if response.headers.get('X-RateLimit-Remaining') is None:
        return
    if int(response.headers['X-RateLimit-Remaining']) < 10:
        seconds_to_sleep = calculate_seconds(int(response.headers['X-RateLimit-Reset']))
        logger.info("API rate limit nearly exhausted. Waiting %s seconds for the limit to reset.", seconds_to_sleep)
        time.sleep(seconds_to_sleep + 10)

def next_page(response):
    '''
    Returns the page number GitHub advertises in the `Link: rel="next"` header, or 0 when the
    listing is drained.
    '''
    link = response.links.get('next') if response.links else None
    if not link:
        return 0
    query = urllib.parse.parse_qs(urllib.parse.urlparse(link['url']).query)
    pages = query.get('page')
    return int(pages[0]) if pages else 0

def generate_jwt(pem, appid):
    secret = pem
    algorithm = "RS256"
    now = int(time.time())

    encoded_jwt = jwt.encode({
        # issued at time, 60 seconds in the past to allow for clock drift
        "iat": now - 60,
        # JWT expiration time (10 minute maximum, so use 8 minutes -- we will use this token
        # immediately anyway)
        "exp": now + (8 * 60),
        # GitHub App's identifier
        "iss": str(appid)
    }, secret, algorithm)

    return encoded_jwt

def rest_url(base_url):
    if not base_url.endswith('/'):
        base_url += '/'
    if base_url != DEFAULT_BASE_URL and not GHEC_DATA_RESIDENCY_MATCH.match(base_url):
        return base_url + 'api/v3/'
    return base_url

def graphql_endpoint(base_url):
    if not base_url.endswith('/'):
        base_url += '/'
    if base_url != DEFAULT_BASE_URL and not GHEC_DATA_RESIDENCY_MATCH.match(base_url):
        return base_url + 'api/graphql'
    return base_url + 'graphql'


class GithubClient:
    '''
    Shared API client handle. Built once when the provider is configured and then handed to every
    resource and data source operation; nothing mutates it afterwards except token refreshes for
    GitHub App authentication.
    '''

    def __init__(self, base_url=DEFAULT_BASE_URL, token=None, owner=None, insecure=False,
                 read_delay_ms=DEFAULT_READ_DELAY_MS, write_delay_ms=DEFAULT_WRITE_DELAY_MS,
                 retry_delay_ms=DEFAULT_RETRY_DELAY_MS, max_retries=DEFAULT_MAX_RETRIES,
                 retryable_errors=None, session=None):
        self.base_url = base_url
        self.api_url = rest_url(base_url)
        self.graphql_url = graphql_endpoint(base_url)
        self.owner = owner
        self.owner_id = None
        self.is_organization = False
        self.read_delay = read_delay_ms / 1000.0
        self.write_delay = write_delay_ms / 1000.0
        self.retry_delay = retry_delay_ms / 1000.0
        self.max_retries = max_retries
        self.retryable_errors = set(retryable_errors or DEFAULT_RETRYABLE_ERRORS)

        self.session = session or requests.Session()
        self.session.verify = not insecure
        self.session.headers.update({'Accept': 'application/vnd.github+json'})

        self.token = token
        self.app_credentials = None
        if token:
            self.session.headers.update({'authorization': 'token ' + token})

        self.latest_request = None
        self.latest_response = None

    @property
    def anonymous(self):
        return not self.token

    def url_for(self, path):
        if path.startswith('http://') or path.startswith('https://'):
            return path
        return self.api_url + path.lstrip('/')

    def request(self, source, path, method='get', params=None, body=None, headers=None):
        url = self.url_for(path)
        method = method.lower()
        with metrics.http_request_timer(source) as timer:
            timer.tags['url'] = url
            timer.tags['method'] = method
            data = json.dumps(body) if body is not None else None
            retry_count = 0
            just_refreshed_token = False
            network_retry_count = 0

            while True:
                time.sleep(self.read_delay if method == 'get' else self.write_delay)
                try:
                    self.latest_request = {'method': method, 'url': url, 'data': data}
                    resp = self.session.request(method=method, url=url, params=params, data=data,
                                                headers=headers)
                    self.latest_response = resp
                except requests.exceptions.RequestException as err:
                    if network_retry_count < NETWORK_MAX_RETRIES:
                        network_retry_count += 1
                        logger.warning('Network request error ({}) while requesting URL (attempt {}): {}'.format(type(err).__name__, network_retry_count, url))
                        time.sleep(network_retry_count * NETWORK_RETRY_WAIT) # simple linear back-off
                        continue
                    logger.error('Max retries reached for network request of URL: {}'.format(url))
                    raise

                # An installation token may expire mid-run; refresh it once and try again.
                if resp.status_code == 401 and self.app_credentials and not just_refreshed_token:
                    self.refresh_app_token()
                    just_refreshed_token = True
                    continue
                just_refreshed_token = False

                if resp.status_code in self.retryable_errors and retry_count < self.max_retries:
                    retry_count += 1
                    logger.info('Encountered retryable status code {}, waiting {} seconds ' \
                        'and then retrying url {} (attempt {}).'.format(resp.status_code,
                        self.retry_delay, url, retry_count))
                    time.sleep(self.retry_delay)
                    continue

                if resp.status_code < 200 or resp.status_code >= 300:
                    timer.tags[metrics.Tag.http_status_code] = resp.status_code
                    raise_for_error(resp, source, url)
                break

            timer.tags['response_type'] = resp.headers.get('content-type', None)
            timer.tags[metrics.Tag.http_status_code] = resp.status_code
            rate_throttling(resp)
            return resp

    def get(self, source, path, params=None, headers=None):
        return self.request(source, path, 'get', params=params, headers=headers)

    def get_json(self, source, path, params=None):
        return self.get(source, path, params).json()

    def post(self, source, path, body=None):
        return self.request(source, path, 'post', body=body)

    def put(self, source, path, body=None):
        return self.request(source, path, 'put', body=body)

    def patch(self, source, path, body=None):
        return self.request(source, path, 'patch', body=body)

    def delete(self, source, path, body=None):
        return self.request(source, path, 'delete', body=body)

    def get_all_pages(self, source, path, params=None, items_key=None, per_page=MAX_PER_PAGE):
        '''
        Drains a page-numbered listing into one list. Every request re-sends the same filter
        params and only the `page` value changes. A failure on any page propagates and whatever
        was collected so far is dropped.
        '''
        query = dict(params or {})
        query['per_page'] = per_page
        page = 1
        items = []
        with metrics.record_counter(source) as counter:
            while True:
                query['page'] = page
                response = self.get(source, path, params=dict(query))
                payload = response.json()
                page_items = payload.get(items_key, []) if items_key else payload
                items.extend(page_items)
                counter.increment(len(page_items))

                page = next_page(response)
                if page == 0:
                    break
        return items

    def graphql(self, source, query, variables=None):
        response = self.request(source, self.graphql_url, 'post',
                                body={'query': query, 'variables': variables or {}})
        return response.json()

    def graphql_all_pages(self, source, query, variables, path, max_pages=500):
        '''
        Cursor pagination over a GraphQL connection. The query must declare a `$cursor: String`
        variable and select `nodes` and `pageInfo { hasNextPage endCursor }` on the connection
        found by drilling into `data` along `path` (e.g. ['repository', 'branchProtectionRules']).
        '''
        query_values = {**variables, 'cursor': None}
        nodes = []

        for i in range(max_pages):
            data = self.graphql(source, query, query_values)

            errors = data.get('errors')
            if errors:
                logger.info('GraphQL call failed with query: %s', query)
                if any(err.get('type') in ['FORBIDDEN', 'INSUFFICIENT_SCOPES'] for err in errors):
                    raise AuthException(errors[0]['message'], data)
                logger.error('GraphQL query failed on page {}: {}'.format(i + 1, errors))
                raise GraphQLError('GraphQL query failed: {}'.format(errors[0].get('message')), data)

            connection = data['data']
            for name in path:
                if connection is None:
                    raise NotFoundException('GraphQL path {} not found'.format('.'.join(path)), data)
                connection = connection[name]

            nodes.extend(connection['nodes'])

            page_info = connection['pageInfo']
            query_values['cursor'] = page_info.get('endCursor')
            if not page_info.get('hasNextPage') or query_values['cursor'] is None:
                break

        return nodes

    def get_installation_token(self, installation_id):
        response = self.post(
            'installation_token',
            'app/installations/{}/access_tokens'.format(installation_id)
        )
        token_info = response.json()
        return token_info['token']

    def refresh_app_token(self, pem=None, appid=None, installation_id=None):
        if pem is None:
            pem, appid, installation_id = self.app_credentials
        else:
            self.app_credentials = (pem, appid, installation_id)

        # Set HTTP authorization to JWT
        self.session.headers.update({'authorization': 'Bearer ' + generate_jwt(pem, appid)})
        logger.info('Using installation id %s', installation_id)

        installation_token = self.get_installation_token(installation_id)

        # Now we have a token we can just use the same way that we use a personal access token
        self.session.headers.update({'authorization': 'token ' + installation_token})
        self.token = installation_token
        return installation_token

    def configure_owner(self):
        if not self.owner:
            if self.anonymous:
                return self
            user = self.get_json('user', 'user')
            self.owner = user['login']
            return self

        try:
            org = self.get_json('organization', 'orgs/{}'.format(self.owner))
        except GithubException:
            # Not an organization (or not visible to us): treat it as a user account.
            self.is_organization = False
            return self

        self.owner_id = org.get('id')
        self.is_organization = True
        return self
