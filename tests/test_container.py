import asyncio

import pytest

from patinfly.auth import PasswordHasher
from patinfly.container import bootstrap, create_container


@pytest.fixture
def container_kwargs(tmp_path, gateway):
    return dict(
        db_file=str(tmp_path / "app.db"),
        key_file=str(tmp_path / "keys" / "secret.key"),
        gateway=gateway,
        is_network_available=lambda: False,
        hasher=PasswordHasher(rounds=4),
    )


def test_token_survives_restart(container_kwargs):
    first = create_container(**container_kwargs)
    assert first.session.current_token() is None
    first.session.set_token("persisted-token")

    second = create_container(**container_kwargs)
    assert second.session.current_token() == "persisted-token"
    assert second.users.auth_token() == "persisted-token"


def test_cleared_token_stays_cleared(container_kwargs):
    create_container(**container_kwargs).session.set_token("t")
    create_container(**container_kwargs).session.clear()

    assert create_container(**container_kwargs).session.current_token() is None


def test_bootstrap_seeds_empty_store(container_kwargs, gateway):
    container = asyncio.run(bootstrap(seed_on_first_run=True, **container_kwargs))

    assert len(asyncio.run(container.bikes.get_all())) == 2
    assert asyncio.run(container.users.get_user()).email == "rider@patinfly.dev"
    assert asyncio.run(container.pricing_plans.get()).version == "3.0"
    assert gateway.calls == []


def test_bootstrap_without_seeding_is_empty_offline(container_kwargs):
    container = asyncio.run(bootstrap(seed_on_first_run=False, **container_kwargs))
    assert asyncio.run(container.bikes.get_all()) == []
