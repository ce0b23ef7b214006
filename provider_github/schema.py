import singer
from singer import metadata

from .validation import ExactlyOneOf

STRING = 'string'
INTEGER = 'integer'
BOOLEAN = 'boolean'
LIST = 'list'
SET = 'set'
OBJECT = 'object'

JSON_TYPES = {
    STRING: 'string',
    INTEGER: 'integer',
    BOOLEAN: 'boolean',
    LIST: 'array',
    SET: 'array',
    OBJECT: 'object',
}

PYTHON_TYPES = {
    STRING: (str,),
    INTEGER: (int,),
    BOOLEAN: (bool,),
    LIST: (list, tuple),
    SET: (list, tuple, set),
    OBJECT: (dict,),
}


class Attribute:
    '''
    One attribute of a resource or data source schema. `element` is the element type of a list or
    set of scalars; `attributes` describes the fields of an object, or of each element of a list
    of objects.
    '''

    def __init__(self, type, description='', required=False, optional=False, computed=False,
                 sensitive=False, force_new=False, default=None, validators=None, element=None,
                 attributes=None):
        self.type = type
        self.description = description
        self.required = required
        self.optional = optional
        self.computed = computed
        self.sensitive = sensitive
        self.force_new = force_new
        self.default = default
        self.validators = validators or []
        self.element = element
        self.attributes = attributes

    @property
    def configurable(self):
        return self.required or self.optional

    def to_json_schema(self):
        schema = {'type': ['null', JSON_TYPES[self.type]]}
        if self.description:
            schema['description'] = self.description
        if self.type in (LIST, SET):
            if self.attributes:
                schema['items'] = object_schema(self.attributes)
            else:
                schema['items'] = {'type': ['null', JSON_TYPES[self.element or STRING]]}
        elif self.type == OBJECT:
            schema.update(object_schema(self.attributes or {}))
        return schema

    def check_type(self, path, value):
        if self.type == INTEGER and isinstance(value, bool):
            return ['Attribute {} must be of type {}'.format(path, self.type)]
        if not isinstance(value, PYTHON_TYPES[self.type]):
            return ['Attribute {} must be of type {}'.format(path, self.type)]
        if self.type in (LIST, SET) and not self.attributes:
            element = self.element or STRING
            for item in value:
                if isinstance(item, bool) and element != BOOLEAN or not isinstance(item, PYTHON_TYPES[element]):
                    return ['Attribute {} elements must be of type {}'.format(path, element)]
        return []


def object_schema(attributes):
    return {
        'type': ['null', 'object'],
        'properties': {name: attr.to_json_schema() for name, attr in attributes.items()},
    }


def validate_attributes(attributes, config, prefix=''):
    errors = []
    for name in config:
        if name not in attributes:
            errors.append('An argument named {!r} is not expected here'.format(prefix + name))

    for name, attr in attributes.items():
        path = prefix + name
        value = config.get(name)
        if value is None:
            if attr.required:
                errors.append('The argument {!r} is required, but no definition was found'.format(path))
            continue
        if not attr.configurable:
            errors.append('Attribute {!r} is computed and cannot be set in configuration'.format(path))
            continue

        type_errors = attr.check_type(path, value)
        if type_errors:
            errors.extend(type_errors)
            continue

        for rule in attr.validators:
            errors.extend(rule.validate(path, value, config))

        if attr.attributes:
            if attr.type == OBJECT:
                errors.extend(validate_attributes(attr.attributes, value, path + '.'))
            else:
                for index, item in enumerate(value):
                    if not isinstance(item, dict):
                        errors.append('Attribute {}[{}] must be an object'.format(path, index))
                        continue
                    errors.extend(validate_attributes(attr.attributes, item, '{}[{}].'.format(path, index)))
    return errors


def apply_defaults(attributes, config):
    result = dict(config)
    for name, attr in attributes.items():
        if result.get(name) is None and attr.default is not None:
            result[name] = attr.default
        elif attr.type == OBJECT and attr.attributes and isinstance(result.get(name), dict):
            result[name] = apply_defaults(attr.attributes, result[name])
        elif attr.type in (LIST, SET) and attr.attributes and isinstance(result.get(name), list):
            result[name] = [apply_defaults(attr.attributes, item) for item in result[name]]
    return result


class Schema:
    def __init__(self, description, attributes, exactly_one_of=None):
        self.description = description
        self.attributes = attributes
        self.rules = [ExactlyOneOf(*names) for names in (exactly_one_of or [])]

    def __getitem__(self, name):
        return self.attributes[name]

    @property
    def replace_only(self):
        return all(attr.force_new for attr in self.attributes.values() if attr.configurable)

    @property
    def sensitive_attributes(self):
        return [name for name, attr in self.attributes.items() if attr.sensitive]

    def validate(self, config):
        errors = validate_attributes(self.attributes, config)
        for rule in self.rules:
            errors.extend(rule.validate('', None, config))
        return errors

    def apply_defaults(self, config):
        return apply_defaults(self.attributes, config)

    def empty_record(self):
        return {name: None for name in self.attributes}

    def to_json_schema(self):
        return object_schema(self.attributes)

    def transform(self, record):
        '''
        Coerces a record into the declared attribute types, dropping anything the schema does not
        declare.
        '''
        with singer.Transformer() as transformer:
            return transformer.transform(record, self.to_json_schema())


def classification(attr):
    values = {
        'required': attr.required,
        'optional': attr.optional,
        'computed': attr.computed,
        'sensitive': attr.sensitive,
        'forces-replacement': attr.force_new,
    }
    return {key: value for key, value in values.items() if value}


def populate_metadata(schema):
    mdata = metadata.new()
    mdata = metadata.write(mdata, (), 'table-key-properties', ['id'])
    mdata = metadata.write(mdata, (), 'replace-only', schema.replace_only)

    for field_name, attr in schema.attributes.items():
        inclusion = 'automatic' if field_name == 'id' else 'available'
        mdata = metadata.write(mdata, ('properties', field_name), 'inclusion', inclusion)
        for key, value in classification(attr).items():
            mdata = metadata.write(mdata, ('properties', field_name), key, value)
        if attr.validators:
            mdata = metadata.write(mdata, ('properties', field_name), 'validators',
                                   [rule.description() for rule in attr.validators])

    return mdata
