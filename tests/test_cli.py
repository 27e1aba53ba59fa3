"""
Tests for the command line entry point.
"""
import json

import pytest
from unittest.mock import AsyncMock, Mock, patch

from steamshelf.__main__ import build_parser, main, run_command
from steamshelf.exceptions import ConfigError
from steamshelf.models import PersistedGame


@pytest.fixture
def service():
    return Mock(
        refresh_games=AsyncMock(return_value={'success': False, 'error': 'fetching: HTTP 503'}),
        get_games=AsyncMock(return_value=[PersistedGame(id=1, name="Halo")]),
        get_game=AsyncMock(return_value=PersistedGame(id=1, name="Halo", is_installed=True)),
        install_game=AsyncMock(return_value=True),
        uninstall_game=AsyncMock(return_value=False),
    )


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


@pytest.mark.asyncio
async def test_list_prints_json(service, capsys):
    args = build_parser().parse_args(['list', '--name', 'halo'])

    assert await run_command(service, args) == 0

    output = json.loads(capsys.readouterr().out)
    assert output[0]['name'] == 'Halo'
    service.get_games.assert_awaited_once_with('halo')


@pytest.mark.asyncio
async def test_show_includes_install_state(service, capsys):
    args = build_parser().parse_args(['show', '1'])

    assert await run_command(service, args) == 0
    assert json.loads(capsys.readouterr().out)['is_installed'] is True


@pytest.mark.asyncio
async def test_failed_refresh_exits_non_zero(service, capsys):
    args = build_parser().parse_args(['refresh'])

    assert await run_command(service, args) == 1
    assert json.loads(capsys.readouterr().out)['error'] == 'fetching: HTTP 503'


@pytest.mark.asyncio
async def test_uninstall_dispatch_failure_exits_non_zero(service):
    args = build_parser().parse_args(['uninstall', '1'])

    assert await run_command(service, args) == 1
    service.uninstall_game.assert_awaited_once_with(1)


def test_main_reports_config_error():
    with patch('steamshelf.__main__.load_settings', side_effect=ConfigError("missing required settings: STEAM_API_KEY")):
        assert main(['list']) == 2
