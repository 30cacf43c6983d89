from __future__ import annotations

import pytest

from churchapi.db.config_store import get_config_store
from churchapi.db.context import run_as
from churchapi.db.modules import ModuleKey
from churchapi.db.registry import get_repos
from churchapi.kernel.errors import NoActiveContextError
from churchapi.repositories import GivingRepos, MessagingRepos


@pytest.mark.unit
def test_get_repos_requires_a_scope():
    with pytest.raises(NoActiveContextError):
        get_repos()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_repos_returns_expected_bundle_type():
    get_config_store().load(ModuleKey.MESSAGING, "mysql://api:p@db/messaging")

    async def work():
        return get_repos(MessagingRepos)

    repos = await run_as(ModuleKey.MESSAGING, work)
    assert isinstance(repos, MessagingRepos)
    # Building a bundle never opens a connection.
    assert repos.notification.db.has_engine is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_repos_rejects_mismatched_bundle_type():
    get_config_store().load(ModuleKey.MESSAGING, "mysql://api:p@db/messaging")

    async def work():
        return get_repos(GivingRepos)

    with pytest.raises(TypeError, match="MessagingRepos"):
        await run_as(ModuleKey.MESSAGING, work)
