import argparse
import json
import os
import sys
import traceback

import singer

from . import lifecycle
from .client import AuthException, BadCredentialsException
from .errors import ConfigurationError
from .provider import configure_provider, get_catalog
from .utils import RedactingFilter, redact_sensitive_data

logger = singer.get_logger()
redactor = RedactingFilter()
logger.addFilter(redactor)


def load_file(path, default=None):
    if path is None:
        return default
    return singer.utils.load_json(path)


def load_state(path):
    # A missing state file means nothing is managed yet
    if not os.path.exists(path):
        return lifecycle.empty_state()
    return singer.utils.load_json(path)


def write_state(path, state):
    with open(path, 'w') as f:
        json.dump(state, f, indent=2, sort_keys=True)
    logger.info('Wrote %s resources to %s', len(state['resources']), path)


def do_discover(args):
    catalog = get_catalog()
    # dump catalog
    print(json.dumps(catalog, indent=2))


def do_validate(args):
    declarations = load_file(args.declarations)
    configs = lifecycle.validate_declarations(declarations)
    logger.info('Success! The configuration is valid (%s blocks).', len(configs))


def do_refresh(args, client):
    state = load_state(args.state)
    write_state(args.state, lifecycle.refresh(client, state))


def do_plan(args, client):
    declarations = load_file(args.declarations)
    state = load_state(args.state)
    changes, _, _ = lifecycle.plan(client, declarations, state)
    print(json.dumps(changes, indent=2))
    logger.info(lifecycle.summarize(changes))


def do_apply(args, client):
    declarations = load_file(args.declarations)
    state = load_state(args.state)
    write_state(args.state, lifecycle.apply(client, declarations, state))


def do_import(args, client):
    state = load_state(args.state)
    write_state(args.state, lifecycle.import_resource(client, state, args.address, args.id))
    logger.info('Import successful!')


COMMANDS = {
    'refresh': do_refresh,
    'plan': do_plan,
    'apply': do_apply,
    'import': do_import,
}


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog='provider-github')
    subparsers = parser.add_subparsers(dest='command')
    subparsers.required = True

    subparsers.add_parser('discover', help='Print the schema of every resource and data source')

    validate = subparsers.add_parser('validate', help='Validate declarations without calling GitHub')
    validate.add_argument('-d', '--declarations', required=True, help='Declarations file')

    for name, help_text in (('refresh', 'Read every managed record and update the state file'),
                            ('plan', 'Show the actions needed to reach the declared configuration'),
                            ('apply', 'Carry out the plan and write the new state file'),
                            ('import', 'Bring an existing GitHub object under management')):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument('-c', '--config', help='Provider config file')
        command.add_argument('-s', '--state', required=True, help='State file')
        if name in ('plan', 'apply'):
            command.add_argument('-d', '--declarations', required=True, help='Declarations file')
        if name == 'import':
            command.add_argument('address', help='Resource address, <type>.<name>')
            command.add_argument('id', help='Import ID of the existing object')

    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    client = None

    try:
        if args.command == 'discover':
            do_discover(args)
        elif args.command == 'validate':
            do_validate(args)
        else:
            config = load_file(args.config, {})
            redactor.add_token(config.get('token'))
            client = configure_provider(config, redactor)
            COMMANDS[args.command](args, client)
    except ConfigurationError as exc:
        logger.critical('Invalid configuration:')
        for error in exc.errors:
            logger.critical('  %s', error)
        sys.exit(1)
    except BadCredentialsException as exc:
        logger.critical("Authentication Error: Invalid GitHub credentials.")
        logger.critical("If you are using a Personal Access Token (PAT), please verify it is valid and has the required permissions.")
        logger.critical("Error details: %s", str(exc))
        log_latest_exchange(client, include_body=False)
        sys.exit(1)
    except AuthException as exc:
        logger.critical("GitHub Authorization Error: %s", str(exc))
        logger.critical("Please verify the token or GitHub App installation has access to the owner and its repositories.")
        sys.exit(1)
    except Exception:
        for line in traceback.format_exc().splitlines():
            logger.critical(line)
        log_latest_exchange(client)
        sys.exit(1)


def log_latest_exchange(client, include_body=True):
    if client is None or client.latest_response is None or client.latest_request is None:
        return
    logger.critical('Latest Request URL: {}'.format(client.latest_request['url']))
    logger.critical('Response Code: {}'.format(client.latest_response.status_code))
    if include_body:
        logger.critical('Response Data:')
        logger.critical(redact_sensitive_data(client.latest_response.text))


if __name__ == "__main__":
    main()
