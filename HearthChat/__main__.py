"""
Entry point for HearthChat application.
This module provides a command-line interface to start the server or a client,
and to register users.
"""

import argparse

from HearthChat.config import config
from HearthChat.core.logging import auto_configure


def parse(argv=None):
    parser = argparse.ArgumentParser(prog='HearthChat', description='HearthChat starter')
    parser.add_argument('--env', default=None,
                        help='Logging preset: development, production or testing (default: $HEARTHCHAT_ENV)')
    subparsers = parser.add_subparsers(dest='command', required=True, help='Available commands')

    server_parser = subparsers.add_parser('server', help='Startup SERVER (WebSocket + HTTP)')
    server_parser.add_argument('--host', default=config.DEFAULT_HOST, help='Bind address')
    server_parser.add_argument('--port', type=int, default=config.DEFAULT_SERVER_PORT,
                               help='WebSocket port, HTTP uses port + 1')
    server_parser.add_argument('--db', default=config.SQLITE_DB_FILE, help='sqlite database file')

    srv_parser = subparsers.add_parser('srv-only', help='Startup server (WebSocket only)')
    srv_parser.add_argument('--host', default=config.DEFAULT_HOST, help='Bind address')
    srv_parser.add_argument('--port', type=int, default=config.DEFAULT_SERVER_PORT, help='WebSocket port')
    srv_parser.add_argument('--db', default=config.SQLITE_DB_FILE, help='sqlite database file')

    client_parser = subparsers.add_parser('client', help='Startup terminal CLIENT')
    client_parser.add_argument('--host', default='localhost', help='Server address (default: localhost)')
    client_parser.add_argument('--port', type=int, default=config.DEFAULT_SERVER_PORT, help='Server port')
    client_parser.add_argument('--username', default=None, help='Login name (prompted when omitted)')
    client_parser.add_argument('--secure', action='store_true', help='Use wss://')

    user_parser = subparsers.add_parser('add-user', help='Register a user')
    user_parser.add_argument('username')
    user_parser.add_argument('--color', default='#ffffff', help='Display color (default: #ffffff)')
    user_parser.add_argument('--db', default=config.SQLITE_DB_FILE, help='sqlite database file')

    return parser.parse_args(argv)


def main(argv=None):
    args = parse(argv)
    auto_configure(args.env)

    if args.command in ('server', 'srv-only'):
        from HearthChat.start import server
        server.server(host=args.host, port=args.port, db_path=args.db, srv_only=args.command == 'srv-only')
    elif args.command == 'client':
        from HearthChat.start import client
        client.client(host=args.host, port=args.port, username=args.username, secure=args.secure)
    elif args.command == 'add-user':
        from HearthChat.start import users
        user_id = users.add_user(args.username, args.color, db_path=args.db)
        print(f"User {args.username} created with id {user_id}")
    else:
        raise Exception('Unknown command')


if __name__ == '__main__':
    main()
