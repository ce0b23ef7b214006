import hashlib
import json
import logging

from .errors import ConfigurationError

TOKEN_MASK = '<TOKEN>'
SENSITIVE_KEYS = ('token', 'plaintext_value', 'encrypted_value', 'secret', 'pem_file')

def camel_to_snake(s):
    return ''.join(['_'+c.lower() if c.isupper() else c for c in s]).lstrip('_')

def camel_to_snake_dict(d):
   if isinstance(d, list):
      return [camel_to_snake_dict(i) if isinstance(i, (dict, list)) else i for i in d]
   return {camel_to_snake(a):camel_to_snake_dict(b) if isinstance(b, (dict, list)) else b for a, b in d.items()}

# format the strings into an id `a:b`
def build_two_part_id(a, b):
    return '{}:{}'.format(a, b)

# return the pieces of id `left:right` as left, right
def parse_two_part_id(id, left, right):
    parts = (id or '').split(':', 1)
    if len(parts) != 2 or not all(parts):
        raise ConfigurationError('unexpected ID format ({!r}); expected {}:{}'.format(id, left, right))
    return parts[0], parts[1]

def build_three_part_id(a, b, c):
    return '{}:{}:{}'.format(a, b, c)

def parse_three_part_id(id, left, center, right):
    parts = (id or '').split(':', 2)
    if len(parts) != 3 or not all(parts):
        raise ConfigurationError('unexpected ID format ({!r}). Expected {}:{}:{}'.format(id, left, center, right))
    return parts[0], parts[1], parts[2]

def parse_slash_id(id, *names):
    parts = (id or '').split('/')
    if len(parts) != len(names) or not all(parts):
        raise ConfigurationError('Invalid ID specified. Supplied ID must be written as {}. Got: {!r}'.format(
            '/'.join('<{}>'.format(n) for n in names), id))
    return tuple(parts)

def build_checksum_id(values):
    h = hashlib.md5()
    h.update(''.join(sorted(values)).encode('utf-8'))
    return h.hexdigest()

def get_permission_normalized(permission):
    # Permissions for some GitHub API routes are expressed as "read", "write", and "admin"; in
    # other places, they are expressed as "pull", "push", and "admin".
    if permission == 'read':
        return 'pull'
    if permission == 'write':
        return 'push'
    return permission

def _redact(value):
    if isinstance(value, dict):
        return {k: (TOKEN_MASK if k in SENSITIVE_KEYS and v else _redact(v)) for k, v in value.items()}
    if isinstance(value, list):
        return [_redact(v) for v in value]
    return value

def redact_sensitive_data(text):
    '''
    Masks token-like fields of a JSON response body. Anything that is not a JSON object or array
    comes back untouched.
    '''
    try:
        parsed = json.loads(text)
    except (ValueError, TypeError):
        return text
    if not isinstance(parsed, (dict, list)):
        return text
    return json.dumps(_redact(parsed))


class RedactingFilter(logging.Filter):
    '''
    Replaces every registered credential with a mask before a record is emitted.
    '''

    def __init__(self):
        super().__init__()
        self.tokens = set()

    def add_token(self, token):
        if token:
            self.tokens.add(token)

    def redact(self, message):
        for token in self.tokens:
            message = message.replace(token, TOKEN_MASK)
        return message

    def filter(self, record):
        if self.tokens:
            record.msg = self.redact(record.getMessage())
            record.args = None
        return True
