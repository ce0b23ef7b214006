'''
Declarative attribute validation rules.

Rules are attached to schema attributes and evaluated together before any API call is made.
Each rule returns a list of messages; the schema gathers every message from every attribute and
raises a single ConfigurationError so the user sees all problems at once. A rule never sees a
null value: unset attributes are only checked by required-ness and by ExactlyOneOf.
'''
import base64
import binascii
import re

SECRET_NAME_PATTERN = re.compile(r'[a-zA-Z_][a-zA-Z0-9_]*')


class Rule:
    def validate(self, path, value, config):
        raise NotImplementedError

    def description(self):
        return self.__class__.__name__


class OneOf(Rule):
    def __init__(self, *values):
        self.values = values

    def validate(self, path, value, config):
        if value not in self.values:
            return ['Attribute {} value must be one of: {}, got: {!r}'.format(
                path, ', '.join('"{}"'.format(v) for v in self.values), value)]
        return []

    def description(self):
        return 'value must be one of: {}'.format(', '.join(self.values))


class ConflictsWith(Rule):
    def __init__(self, *names):
        self.names = names

    def validate(self, path, value, config):
        return ['Attribute {!r} cannot be specified when {!r} is specified'.format(path, name)
                for name in self.names if config.get(name) not in (None, '')]

    def description(self):
        return 'conflicts with: {}'.format(', '.join(self.names))


class ExactlyOneOf(Rule):
    '''
    Applied at the schema level: exactly one of `names` must be set.
    '''
    def __init__(self, *names):
        self.names = names

    def validate(self, path, value, config):
        present = [name for name in self.names if config.get(name) not in (None, '')]
        if len(present) != 1:
            return ['Exactly one of these attributes must be configured: [{}]'.format(
                ', '.join(self.names))]
        return []

    def description(self):
        return 'exactly one of: {}'.format(', '.join(self.names))


class Base64(Rule):
    def validate(self, path, value, config):
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError, TypeError):
            return ['Attribute {} must be a base64 encoded string'.format(path)]
        return []


class SizeAtLeast(Rule):
    def __init__(self, minimum):
        self.minimum = minimum

    def validate(self, path, value, config):
        if len(value) < self.minimum:
            return ['Attribute {} must contain at least {} elements, got: {}'.format(path, self.minimum, len(value))]
        return []


class SizeAtMost(Rule):
    def __init__(self, maximum):
        self.maximum = maximum

    def validate(self, path, value, config):
        if len(value) > self.maximum:
            return ['Attribute {} must contain at most {} elements, got: {}'.format(path, self.maximum, len(value))]
        return []


class LengthBetween(Rule):
    def __init__(self, minimum, maximum):
        self.minimum = minimum
        self.maximum = maximum

    def validate(self, path, value, config):
        if not self.minimum <= len(value) <= self.maximum:
            return ['Attribute {} string length must be between {} and {}, got: {}'.format(
                path, self.minimum, self.maximum, len(value))]
        return []


class Matches(Rule):
    def __init__(self, pattern, message):
        self.pattern = re.compile(pattern)
        self.message = message

    def validate(self, path, value, config):
        values = value if isinstance(value, (list, tuple, set)) else [value]
        return ['Attribute {} {}, got: {!r}'.format(path, self.message, v)
                for v in values if not self.pattern.fullmatch(v)]


class SecretName(Rule):
    # https://docs.github.com/en/actions/reference/encrypted-secrets#naming-your-secrets
    def validate(self, path, value, config):
        errors = []
        if not SECRET_NAME_PATTERN.fullmatch(value):
            errors.append('Invalid Secret Name: {} can only contain alphanumeric characters or underscores and must not start with a number'.format(path))
        if value.upper().startswith('GITHUB_'):
            errors.append('Invalid Secret Name: {} must not start with the GITHUB_ prefix'.format(path))
        return errors
