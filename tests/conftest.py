"""Shared pytest fixtures."""

import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from ghostwriter.config import ChannelConfig
from ghostwriter.memory.repository import InMemoryChannelRepository
from ghostwriter.models import ContentDraft, SourceMaterial
from tests.mocks.mock_channel import make_channel_dict


@pytest.fixture
def channel_dict():
    return make_channel_dict()


@pytest.fixture
def channel():
    return ChannelConfig.from_dict(make_channel_dict())


@pytest.fixture
def repository():
    return InMemoryChannelRepository()


@pytest.fixture
def sources():
    return [
        SourceMaterial(
            title="Compiler 2.0 released",
            body="The 2.0 release cuts cold build times by 40% and adds incremental linking.",
            url="https://example.com/compiler-2",
        ),
    ]


@pytest.fixture
def draft():
    body = (
        "Builds got faster. A lot faster, if the release notes hold up.\n\n"
        "The 2.0 release cuts cold build times by 40%, and incremental linking means "
        "most edits never touch the full link step again.\n\n"
        "Will it matter for you? Probably."
    )
    return ContentDraft(
        headline="Compiler 2.0 halves the wait",
        body=body,
        revision=0,
        channel_id="tech-weekly",
        word_count=len(body.split()),
    )
