"""Tests for CSV seeding and the system settings catalogue."""

from pathlib import Path

import pytest

from backoffice.database import seed_data_from_csv
from backoffice.models import Claim, Payment, Policy, SystemSetting, User
from backoffice.report_service import load_snapshot
from backoffice.settings_service import (
    DEFAULT_SETTINGS,
    ensure_default_settings,
    get_int_setting,
    get_setting,
    update_setting,
)

DATA_DIR = Path(__file__).resolve().parent.parent / "data"


def test_seed_loads_sample_data_once(session_factory, session):
    added = seed_data_from_csv(DATA_DIR, session_factory=session_factory)
    assert added == {"users": 1, "clients": 3, "vehicles": 3, "policies": 3, "claims": 2, "payments": 4}

    again = seed_data_from_csv(DATA_DIR, session_factory=session_factory)
    assert set(again.values()) == {0}

    assert session.query(User).one().password.startswith("$2")
    assert session.query(Policy).filter(Policy.policy_number == "POL20260003").one().client.first_name == "Sarah"
    assert session.query(Claim).filter(Claim.settled_amount.isnot(None)).count() == 1
    assert session.query(Payment).filter(Payment.status == "completed").count() == 3


def test_seeded_data_feeds_snapshot(session_factory, session):
    seed_data_from_csv(DATA_DIR, session_factory=session_factory)
    snapshot = load_snapshot(session)
    assert len(snapshot.payments) == 4
    assert all(policy.client is not None for policy in snapshot.policies)


def test_missing_files_are_skipped(session_factory, tmp_path):
    (tmp_path / "clients.csv").write_text("first_name,phone\nAmina,+254700000009\n,\n", encoding="utf-8")
    added = seed_data_from_csv(tmp_path, session_factory=session_factory)
    assert added["clients"] == 1
    assert added["policies"] == 0


def test_default_settings_are_idempotent(session):
    assert ensure_default_settings(session) == len(DEFAULT_SETTINGS)
    assert ensure_default_settings(session) == 0
    assert session.query(SystemSetting).count() == len(DEFAULT_SETTINGS)


def test_number_setting_validation(session):
    ensure_default_settings(session)
    setting = get_setting(session, "expiry_window_days")
    with pytest.raises(ValueError):
        update_setting(session, setting, "thirty")

    update_setting(session, setting, " 45 ")
    assert get_int_setting(session, "expiry_window_days", 30) == 45
    assert get_int_setting(session, "not_a_setting", 7) == 7


@pytest.mark.parametrize("stored", ["inf", "nan", "1e400", "0", "9999"])
def test_unusable_stored_window_uses_default(session, stored):
    ensure_default_settings(session)
    setting = get_setting(session, "expiry_window_days")
    setting.setting_value = stored
    session.commit()
    assert get_int_setting(session, "expiry_window_days", 30) == 30


def test_bounded_number_settings_are_normalized(session):
    ensure_default_settings(session)
    setting = get_setting(session, "report_period_months")
    assert update_setting(session, setting, "6.0").setting_value == "6"
    with pytest.raises(ValueError, match="between 1 and 60"):
        update_setting(session, setting, "-3")
