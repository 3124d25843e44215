"""
Entry point for NakenBridge.
This module provides a command-line interface to start the relay, the console client or a connectivity probe.
"""

import argparse
import sys

from NakenBridge.config import config
from NakenBridge.core.logging import auto_configure
from NakenBridge.core.relay import RELAY_MODES
from NakenBridge.start import client, probe, relay


def parse(argv=None):
    # Initialize argument parser for command line interface
    parser = argparse.ArgumentParser(prog='NakenBridge', description='NakenBridge starter')
    subparsers = parser.add_subparsers(dest='command', required=True, help='Available commands')

    relay_parser = subparsers.add_parser('relay', help='Startup RELAY (WebSocket to chat server)')
    relay_parser.add_argument('--host', default=config.DEFAULT_HOST,
                              help=f'Listen address (default: {config.DEFAULT_HOST})')
    relay_parser.add_argument('--port', type=int, default=config.DEFAULT_RELAY_PORT,
                              help=f'Listen port (default: {config.DEFAULT_RELAY_PORT})')
    relay_parser.add_argument('--mode', choices=RELAY_MODES, default=config.RELAY_MODE,
                              help='negotiated: clients send setTarget; fixed: all clients use --target-*')
    relay_parser.add_argument('--target-host', default=config.DEFAULT_TARGET_HOST,
                              help=f'Chat server host in fixed mode (default: {config.DEFAULT_TARGET_HOST})')
    relay_parser.add_argument('--target-port', type=int, default=config.DEFAULT_TARGET_PORT,
                              help=f'Chat server port in fixed mode (default: {config.DEFAULT_TARGET_PORT})')
    relay_parser.add_argument('--connect-timeout', type=float, default=config.CONNECT_TIMEOUT,
                              help='Chat server connect timeout in seconds, 0 to disable')
    relay_parser.add_argument('--log-env', default=None,
                              help='Logging preset: development, production or testing')

    client_parser = subparsers.add_parser('client', help='Startup console CLIENT')
    client_parser.add_argument('--relay', default=config.DEFAULT_RELAY_ADDRESS,
                               help=f'Relay URL (default: {config.DEFAULT_RELAY_ADDRESS})')
    client_parser.add_argument('--server', default=None, help='Chat server host (default: last used)')
    client_parser.add_argument('--port', type=int, default=None, help='Chat server port (default: last used)')
    client_parser.add_argument('--username', default=None, help='Chat name (default: last used)')

    probe_parser = subparsers.add_parser('probe', help='Test the connection to a chat server')
    probe_parser.add_argument('--host', default=config.DEFAULT_TARGET_HOST,
                              help=f'Chat server host (default: {config.DEFAULT_TARGET_HOST})')
    probe_parser.add_argument('--port', type=int, default=config.DEFAULT_TARGET_PORT,
                              help=f'Chat server port (default: {config.DEFAULT_TARGET_PORT})')
    probe_parser.add_argument('--timeout', type=float, default=config.PROBE_TIMEOUT,
                              help=f'Seconds to wait (default: {config.PROBE_TIMEOUT:g})')

    return parser.parse_args(argv)


def main(argv=None):
    args = parse(argv)

    if args.command == 'relay':
        auto_configure(args.log_env)
        relay.relay(
            host=args.host, port=args.port, mode=args.mode,
            target_host=args.target_host, target_port=args.target_port,
            connect_timeout=args.connect_timeout
        )
    elif args.command == 'client':
        auto_configure('client')
        client.client(relay_url=args.relay, server=args.server, port=args.port, username=args.username)
    elif args.command == 'probe':
        auto_configure('client')
        return probe.probe(host=args.host, port=args.port, timeout=args.timeout)
    return 0


if __name__ == '__main__':
    sys.exit(main())
