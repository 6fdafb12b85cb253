"""Tests for wallet identity and session persistence."""

import pytest
from eth_account import Account

from conftest import BOB, PATH_USD
from tempo_pay.config import STORAGE_NAMESPACE
from tempo_pay.errors import InvalidSecret, WalletNotConnected
from tempo_pay.ledger import TransactionLedger, TransactionRecord
from tempo_pay.session import WalletSession
from tempo_pay.tokens import DEFAULT_TOKENS, TokenDescriptor, add_custom_token
from tempo_pay.wallet import WalletIdentity


def _record(session, tx_hash="0xaa"):
    return TransactionRecord(
        hash=tx_hash,
        from_address=session.account.address,
        to=BOB,
        amount="1",
        token=PATH_USD,
        token_symbol="pathUSD",
    )


@pytest.fixture
def identity(signer):
    return WalletIdentity(signer)


class TestCreateAndImport:
    def test_create_persists_account(self, session, store, identity):
        account = identity.create(session)

        assert session.is_connected
        assert account.address.startswith("0x")
        record = store.get(STORAGE_NAMESPACE)
        assert record["address"] == account.address
        assert Account.from_key(record["secret"]).address == account.address

    def test_import_accepts_key_with_or_without_prefix(self, session, identity, account_key):
        raw = bytes(account_key.key).hex()
        assert identity.import_(session, raw).address == account_key.address
        assert identity.import_(session, "0x" + raw).address == account_key.address

    @pytest.mark.parametrize("secret", ["", "0x1234", "zz" * 32, "0x" + "00" * 31])
    def test_import_rejects_bad_secret(self, session, identity, secret):
        with pytest.raises(InvalidSecret):
            identity.import_(session, secret)
        assert not session.is_connected

    def test_import_rejects_out_of_range_key(self, session, identity):
        with pytest.raises(InvalidSecret):
            identity.import_(session, "0x" + "00" * 32)

    def test_switching_account_resets_scoped_state(self, connected, identity):
        add_custom_token(connected, TokenDescriptor(
            "0x20c0000000000000000000000000000000000abc", "ZetaUSD", "Zeta USD", 6,
        ))
        TransactionLedger().record(connected, _record(connected))
        connected.fee_token = DEFAULT_TOKENS[2].address

        other = Account.create()
        identity.import_(connected, bytes(other.key).hex())

        assert connected.account.address == other.address
        assert connected.transactions == []
        assert connected.custom_tokens == []
        assert connected.fee_token == connected.config.default_fee_token

    def test_reimporting_same_account_keeps_history(self, connected, identity, account_key):
        TransactionLedger().record(connected, _record(connected))
        identity.import_(connected, bytes(account_key.key).hex())
        assert len(connected.transactions) == 1


class TestClear:
    def test_clear_wipes_secret_and_storage(self, connected, store, identity):
        handle = connected.account.secret
        TransactionLedger().record(connected, _record(connected))
        connected.set_sponsored(True)

        identity.clear(connected)

        assert handle.wiped
        assert not connected.is_connected
        assert connected.transactions == []
        assert connected.is_sponsored is False
        assert store.get(STORAGE_NAMESPACE) is None

    def test_operations_need_account(self, session):
        with pytest.raises(WalletNotConnected):
            session.require_account()

    def test_sponsorship_toggle_needs_account(self, session, store):
        with pytest.raises(WalletNotConnected):
            session.set_sponsored(True)
        assert session.is_sponsored is False
        assert store.get(STORAGE_NAMESPACE) is None

    def test_sponsorship_toggle_persists(self, connected, store):
        connected.set_sponsored(True)
        assert store.get(STORAGE_NAMESPACE)["is_sponsored"] is True

    def test_secret_not_in_repr(self, connected):
        secret = connected.account.secret.reveal()
        assert secret not in repr(connected.account)
        assert secret not in repr(connected.account.secret)


class TestRestore:
    def test_state_survives_restart(self, connected, store, identity):
        TransactionLedger().record(connected, _record(connected))
        connected.set_sponsored(True)

        reloaded = WalletSession.load(store, config=connected.config)
        account = identity.restore(reloaded)

        assert account is not None
        assert account.address == connected.account.address
        assert reloaded.is_sponsored is True
        assert [r.hash for r in reloaded.transactions] == ["0xaa"]

    def test_mismatched_record_is_cleared(self, connected, store, identity):
        record = store.get(STORAGE_NAMESPACE)
        record["address"] = Account.create().address
        store.set(STORAGE_NAMESPACE, record)

        reloaded = WalletSession.load(store, config=connected.config)
        assert identity.restore(reloaded) is None
        assert not reloaded.is_connected
        assert store.get(STORAGE_NAMESPACE) is None

    def test_restore_without_record(self, session, identity):
        assert identity.restore(session) is None

    def test_history_cap_applied_on_load(self, connected, store, config):
        record = store.get(STORAGE_NAMESPACE)
        template = _record(connected).to_dict()
        record["transactions"] = [dict(template, hash=f"0x{i:02x}") for i in range(60)]
        store.set(STORAGE_NAMESPACE, record)

        reloaded = WalletSession.load(store, config=config)
        assert len(reloaded.transactions) == config.history_limit
        assert reloaded.transactions[0].hash == "0x00"
