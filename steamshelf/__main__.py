"""
Command line entry point.

    python -m steamshelf refresh
    python -m steamshelf list [--name QUERY]
    python -m steamshelf show GAME_ID
    python -m steamshelf install GAME_ID
    python -m steamshelf uninstall GAME_ID

Results are printed as JSON on stdout; logs go to stderr.
"""

import argparse
import asyncio
import json
import logging
import sys

from steamshelf.config import load_settings
from steamshelf.exceptions import ConfigError, SteamshelfError
from steamshelf.services.library_service import LibraryService, build_library_service

logger = logging.getLogger("steamshelf")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="steamshelf", description="Steam library with IGDB metadata")
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')

    commands = parser.add_subparsers(dest='command', required=True)
    commands.add_parser('refresh', help='Rebuild the library from Steam and IGDB')

    list_parser = commands.add_parser('list', help='List games in the library')
    list_parser.add_argument('--name', help='Fuzzy filter on the game name')

    for name, help_text in (
        ('show', 'Show one game with its install state'),
        ('install', 'Ask Steam to install a game'),
        ('uninstall', 'Ask Steam to uninstall a game'),
    ):
        command = commands.add_parser(name, help=help_text)
        command.add_argument('game_id', type=int)

    return parser


async def run_command(service: LibraryService, args: argparse.Namespace) -> int:
    """Run one parsed command and print its JSON result. Returns the exit code."""
    if args.command == 'refresh':
        result = await service.refresh_games()
        _print_json(result)
        return 0 if result.get('success') else 1

    if args.command == 'list':
        games = await service.get_games(args.name)
        _print_json([game.to_dict() for game in games])
        return 0

    if args.command == 'show':
        game = await service.get_game(args.game_id)
        _print_json(game.to_dict())
        return 0

    if args.command == 'install':
        dispatched = await service.install_game(args.game_id)
    else:
        dispatched = await service.uninstall_game(args.game_id)
    _print_json({'success': dispatched, 'game_id': args.game_id})
    return 0 if dispatched else 1


def _print_json(data) -> None:
    json.dump(data, sys.stdout, indent=2)
    sys.stdout.write("\n")


async def _main(args: argparse.Namespace) -> int:
    settings = load_settings()
    service = await build_library_service(settings)
    try:
        return await run_command(service, args)
    finally:
        await service.close()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stderr,
    )

    try:
        return asyncio.run(_main(args))
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 2
    except SteamshelfError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
