import os
import pathlib
import sys
import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import gateway`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from gateway.cogateway import hashlock  # noqa: E402
from gateway.cogateway.anchor import Anchor  # noqa: E402
from gateway.cogateway.config import CoGatewayConfig, ConfigManager  # noqa: E402
from gateway.cogateway.ledger import AssetKind, BalanceLedger  # noqa: E402
from gateway.cogateway.organization import Organization  # noqa: E402
from gateway.cogateway.registry import CoGateway  # noqa: E402


REDEEMER = "0x" + "11" * 20
FACILITATOR = "0x" + "22" * 20
COGATEWAY = "0x" + "33" * 20
REDEEM_POOL = "0x" + "44" * 20
OWNER = "0x" + "55" * 20
BENEFICIARY = "0x" + "66" * 20
STAKE_VAULT = "0x" + "77" * 20
STRANGER = "0x" + "88" * 20

SECRET = "s3cr3t"
HASH_LOCK = hashlock.compute_hash_lock(SECRET)

START_HEIGHT = 10
REVERT_TIMEOUT = 5


def _env_flag(name: str) -> bool:
    v = (os.environ.get(name) or '').strip().lower()
    return v in {'1', 'true', 'yes', 'y', 'on'}


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "slow: slow correctness tests (skipped unless COGATEWAY_RUN_SLOW=1)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list) -> None:
    run_slow = _env_flag('COGATEWAY_RUN_SLOW')

    for item in items:
        if 'slow' in item.keywords and not run_slow:
            item.add_marker(pytest.mark.skip(reason='slow tests skipped; set COGATEWAY_RUN_SLOW=1 to enable'))


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch):
    """Fresh config singleton and no COGATEWAY_* overrides from the environment."""
    for key in list(os.environ):
        if key.startswith("COGATEWAY_"):
            monkeypatch.delenv(key, raising=False)
    ConfigManager.reset()
    yield
    ConfigManager.reset()


@pytest.fixture
def config():
    cfg = CoGatewayConfig()
    cfg.redeem.revert_timeout_blocks.set(REVERT_TIMEOUT)
    return cfg


@pytest.fixture
def ledger():
    return BalanceLedger()


@pytest.fixture
def anchor():
    return Anchor(initial_block_height=START_HEIGHT)


@pytest.fixture
def organization():
    org = Organization(OWNER)
    org.set_worker(FACILITATOR, expiration_height=1_000_000, caller=OWNER)
    return org


@pytest.fixture
def gateway(ledger, organization, anchor, config):
    return CoGateway(
        address=COGATEWAY,
        ledger=ledger,
        redeem_pool=REDEEM_POOL,
        organization=organization,
        anchor=anchor,
        config=config,
    )


@pytest.fixture
def funded(ledger):
    """Redeemer holds 1000 TOKEN, facilitator holds 50 BASE_TOKEN."""
    ledger.mint(REDEEMER, AssetKind.TOKEN, 1000)
    ledger.mint(FACILITATOR, AssetKind.BASE_TOKEN, 50)
    return ledger


@pytest.fixture
def requested(gateway, funded):
    """Message hash of a 1000 TOKEN request by REDEEMER, nonce 1."""
    return gateway.request_redeem(
        redeemer=REDEEMER,
        amount=1000,
        gas_price=1,
        gas_limit=100,
        nonce=1,
        beneficiary=BENEFICIARY,
        hash_lock=HASH_LOCK,
    )


@pytest.fixture
def declared(gateway, requested):
    """Message hash of the request above, accepted with a 50 bounty."""
    gateway.accept_redeem(requested, facilitator=FACILITATOR, bounty=50)
    return requested
