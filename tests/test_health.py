"""
Bastion - Health Server Tests
=============================
"""

import json
from unittest.mock import MagicMock

import pytest
from aiohttp.test_utils import make_mocked_request

from bastion.core.health import HealthCheckServer

from conftest import GUILD_ID


@pytest.fixture
def server(guard):
    bot = MagicMock()
    bot.is_ready.return_value = True
    bot.guilds = [MagicMock()]
    bot.get_guild.side_effect = lambda gid: MagicMock() if gid == GUILD_ID else None
    return HealthCheckServer(bot, guard, port=0)


def status_request(guild_id):
    return make_mocked_request("GET", f"/status/{guild_id}", match_info={"guild_id": guild_id})


class TestHealthServer:

    @pytest.mark.asyncio
    async def test_health_reports_connection(self, server):
        response = await server.health_handler(make_mocked_request("GET", "/health"))
        body = json.loads(response.body)

        assert response.status == 200
        assert body["status"] == "healthy"
        assert body["guilds"] == 1

    @pytest.mark.asyncio
    async def test_health_while_starting(self, server):
        server.bot.is_ready.return_value = False

        response = await server.health_handler(make_mocked_request("GET", "/health"))

        assert json.loads(response.body)["status"] == "starting"

    @pytest.mark.asyncio
    async def test_guild_status(self, server, guard):
        await guard.set_raid_mode(GUILD_ID, True, "Drill")

        response = await server.status_handler(status_request(str(GUILD_ID)))
        body = json.loads(response.body)

        assert response.status == 200
        assert body["guild_id"] == str(GUILD_ID)
        assert body["antinuke"]["emergency_mode"] is False
        assert body["antiraid"]["active"] is True
        assert body["quarantined"] == []

    @pytest.mark.asyncio
    async def test_invalid_guild_id(self, server):
        response = await server.status_handler(status_request("abc"))

        assert response.status == 400

    @pytest.mark.asyncio
    async def test_unknown_guild(self, server):
        response = await server.status_handler(status_request("999"))

        assert response.status == 404
