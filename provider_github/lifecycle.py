'''
A small plan / apply / refresh / import driver over the resource and data source adapters.

Declarations use the Terraform JSON syntax subset:

    {"resource": {"<type>": {"<name>": {attributes}}}, "data": {"<type>": {"<name>": {attributes}}}}

and state is kept in the same shape Terraform writes:

    {"version": 4, "resources": [{"mode": "managed" | "data", "type": ..., "name": ..., "attributes": {...}}]}
'''
import json

import singer

from .errors import ConfigurationError, ProviderError
from .provider import get_data_source, get_resource
from .schema import Attribute, LIST, OBJECT, SET

logger = singer.get_logger()

STATE_VERSION = 4
MANAGED = 'managed'
DATA = 'data'

CREATE = 'create'
UPDATE = 'update'
REPLACE = 'replace'
DELETE = 'delete'
NO_OP = 'no-op'

SENSITIVE_MASK = '(sensitive value)'


def empty_state():
    return {'version': STATE_VERSION, 'resources': []}


def address(mode, type_name, name):
    if mode == DATA:
        return 'data.{}.{}'.format(type_name, name)
    return '{}.{}'.format(type_name, name)


def parse_address(addr):
    parts = addr.split('.')
    if len(parts) == 3 and parts[0] == 'data':
        return DATA, parts[1], parts[2]
    if len(parts) == 2 and all(parts):
        return MANAGED, parts[0], parts[1]
    raise ConfigurationError('Invalid resource address {!r}. Expected <type>.<name>'.format(addr))


def iter_declarations(declarations):
    for block, mode in (('resource', MANAGED), ('data', DATA)):
        for type_name, named in sorted((declarations.get(block) or {}).items()):
            for name, attributes in sorted(named.items()):
                yield mode, type_name, name, attributes or {}


def adapter_for(mode, type_name):
    if mode == DATA:
        return get_data_source(type_name)
    return get_resource(type_name)


def state_index(state):
    return {address(e['mode'], e['type'], e['name']): e for e in (state or empty_state())['resources']}


def state_entry(mode, type_name, name, adapter, record):
    return {
        'mode': mode,
        'type': type_name,
        'name': name,
        'attributes': adapter.schema.transform(record),
    }


def validate_declarations(declarations):
    '''
    Validates every declared block and returns {address: config with defaults applied}. All
    violations across all blocks are reported together.
    '''
    configs = {}
    errors = []
    for mode, type_name, name, attributes in iter_declarations(declarations):
        try:
            adapter = adapter_for(mode, type_name)
            configs[address(mode, type_name, name)] = adapter.validate(attributes)
        except ConfigurationError as err:
            errors.extend('{}: {}'.format(address(mode, type_name, name), e) for e in err.errors)
    if errors:
        raise ConfigurationError(errors)
    return configs


def refresh(client, state, keep_cleared=False):
    '''
    Re-reads every record in state. Records whose identity was cleared (gone remotely or
    modified outside this provider) are dropped unless `keep_cleared` is set.
    '''
    refreshed = empty_state()
    for entry in (state or empty_state())['resources']:
        adapter = adapter_for(entry['mode'], entry['type'])
        addr = address(entry['mode'], entry['type'], entry['name'])
        logger.info('%s: Refreshing state... [id=%s]', addr, entry['attributes'].get('id'))

        if entry['mode'] == MANAGED and entry['attributes'].get('id') is None:
            record = dict(entry['attributes'])
        elif entry['mode'] == DATA:
            config = {k: v for k, v in entry['attributes'].items()
                      if k in adapter.schema.attributes and adapter.schema[k].configurable and v is not None}
            record = adapter.read(client, config)
        else:
            record = adapter.read(client, dict(entry['attributes']))

        if record.get('id') is None:
            if not keep_cleared:
                logger.info('%s: dropped from state', addr)
                continue
            record = dict(entry['attributes'], id=None)
        refreshed['resources'].append(state_entry(entry['mode'], entry['type'], entry['name'], adapter, record))
    return refreshed


def differs(attr, desired, stored):
    # state stores "" as null
    if desired == '':
        desired = None
    if stored == '':
        stored = None
    if desired is None:
        return stored is not None and not attr.computed
    if attr.type == OBJECT and attr.attributes:
        stored = stored or {}
        return any(differs(sub, desired.get(key), stored.get(key))
                   for key, sub in attr.attributes.items() if sub.configurable)
    if attr.type in (LIST, SET) and attr.attributes:
        stored = stored or []
        if len(desired) != len(stored):
            return True
        return any(differs(attr_of(attr), d, s) for d, s in zip(desired, stored))
    if attr.type == SET:
        return sorted(desired, key=json.dumps) != sorted(stored or [], key=json.dumps)
    return desired != stored


def attr_of(attr):
    # An element of a list of objects compares like an object with the same attributes
    return Attribute(OBJECT, attributes=attr.attributes, optional=True)


def changed_attributes(schema, config, stored):
    return [name for name, attr in schema.attributes.items()
            if attr.configurable and differs(attr, config.get(name), stored.get(name))]


def masked(schema, name, value):
    if value is not None and schema[name].sensitive:
        return SENSITIVE_MASK
    return value


def plan_changes(configs, state):
    '''
    Compares validated declarations with (refreshed) state and returns the ordered list of
    actions. A change to a forces-replacement attribute, or a record whose identity was cleared,
    plans a replacement.
    '''
    existing = state_index(state)
    changes = []

    for addr, config in configs.items():
        mode, type_name, name = parse_address(addr)
        if mode == DATA:
            continue
        resource = get_resource(type_name)
        entry = existing.get(addr)
        if entry is None:
            action, changed = CREATE, [n for n, v in config.items() if v is not None and resource.schema[n].configurable]
        else:
            stored = entry['attributes']
            changed = changed_attributes(resource.schema, config, stored)
            if stored.get('id') is None:
                action = REPLACE
            elif not changed:
                action = NO_OP
            elif any(resource.schema[n].force_new for n in changed):
                action = REPLACE
            else:
                action = UPDATE
        before = entry['attributes'] if entry else {}
        changes.append({
            'address': addr,
            'mode': mode,
            'type': type_name,
            'name': name,
            'action': action,
            'changes': {n: {'before': masked(resource.schema, n, before.get(n)),
                            'after': masked(resource.schema, n, config.get(n))} for n in changed},
        })

    for addr, entry in existing.items():
        if entry['mode'] == MANAGED and addr not in configs:
            changes.append({
                'address': addr,
                'mode': MANAGED,
                'type': entry['type'],
                'name': entry['name'],
                'action': DELETE,
                'changes': {},
            })
    return changes


def plan(client, declarations, state):
    configs = validate_declarations(declarations)
    refreshed = refresh(client, state, keep_cleared=True)
    return plan_changes(configs, refreshed), configs, refreshed


def summarize(changes):
    counts = {action: 0 for action in (CREATE, UPDATE, REPLACE, DELETE)}
    for change in changes:
        if change['action'] in counts:
            counts[change['action']] += 1
    return 'Plan: {} to add, {} to change, {} to replace, {} to destroy.'.format(
        counts[CREATE], counts[UPDATE], counts[REPLACE], counts[DELETE])


def apply(client, declarations, state):
    '''
    Plans against freshly read state and carries out every action. Returns the new state, which
    also holds the result of reading every declared data source.
    '''
    changes, configs, refreshed = plan(client, declarations, state)
    existing = state_index(refreshed)
    new_state = empty_state()

    for change in changes:
        addr = change['address']
        resource = get_resource(change['type'])
        entry = existing.get(addr)
        action = change['action']
        logger.info('%s: %s', addr, action)

        if action == DELETE:
            # a cleared id means the object is already gone remotely
            if entry['attributes'].get('id') is not None:
                resource.delete(client, entry['attributes'])
            continue

        if action == NO_OP:
            record = entry['attributes']
        elif action == CREATE:
            record = resource.create(client, configs[addr])
        elif action == UPDATE:
            record = resource.update(client, configs[addr], entry['attributes'])
        else:
            if entry['attributes'].get('id') is not None:
                resource.delete(client, entry['attributes'])
            record = resource.create(client, configs[addr])

        if record.get('id') is None:
            raise ProviderError('Provider produced inconsistent result after apply',
                                '{} was not found after {}'.format(addr, action))
        new_state['resources'].append(state_entry(MANAGED, change['type'], change['name'], resource, record))

    for addr, config in configs.items():
        mode, type_name, name = parse_address(addr)
        if mode != DATA:
            continue
        data_source = get_data_source(type_name)
        logger.info('%s: Reading...', addr)
        record = data_source.read(client, config)
        new_state['resources'].append(state_entry(DATA, type_name, name, data_source, record))

    return new_state


def import_resource(client, state, addr, import_id):
    mode, type_name, name = parse_address(addr)
    if mode != MANAGED:
        raise ConfigurationError('Only managed resources can be imported, got {!r}'.format(addr))
    if addr in state_index(state):
        raise ConfigurationError('Resource already managed: {} is already in state'.format(addr))

    resource = get_resource(type_name)
    logger.info('%s: Importing from ID %r...', addr, import_id)
    record = resource.import_state(client, import_id)
    if record.get('id') is None:
        raise ProviderError('Cannot import non-existent remote object',
                            'While attempting to import an existing object to {}, the provider detected '
                            'that no object exists with the given id {!r}'.format(addr, import_id))

    new_state = {'version': STATE_VERSION, 'resources': list((state or empty_state())['resources'])}
    new_state['resources'].append(state_entry(MANAGED, type_name, name, resource, record))
    return new_state
