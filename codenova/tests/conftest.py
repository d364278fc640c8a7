"""Shared fixtures. Every stateful store is created fresh per test."""

import pytest

from codenova.configuration.config import Settings
from codenova.domain.model.chat.conversation import Conversation
from codenova.infrastructure.agent.permission.gate import PermissionGate
from codenova.infrastructure.agent.session_registry import AgentSessionRegistry
from codenova.infrastructure.events.chunk_channel import ChunkChannel


@pytest.fixture
def settings():
    """Settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        api_key="test-key",
        base_url="https://api.anthropic.com",
        model="claude-sonnet-4-20250514",
        agent_working_directory="/tmp/codenova-tests",
    )


@pytest.fixture
def channel():
    return ChunkChannel()


@pytest.fixture
def registry():
    return AgentSessionRegistry()


@pytest.fixture
def gate(channel):
    return PermissionGate(publisher=channel.send_permission_request, timeout_seconds=5)


@pytest.fixture
def conversation():
    return Conversation()
