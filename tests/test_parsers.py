import pytest

from remindcare.application.services.parsers import (
    is_always_command,
    is_greeting,
    normalize_time_input,
    normalize_wa_id,
    parse_admin_command,
    parse_calendar_date,
    parse_checkin_answer,
    parse_delivery_answer,
    parse_wa_id_list,
    parse_yes_no,
)
from remindcare.domain.workflow import CheckinAnswer, DeliveryAnswer


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("7", "07:00"),
        ("07", "07:00"),
        ("7:30", "07:30"),
        ("17:05", "17:05"),
        ("17.05", "17:05"),
        ("730", "07:30"),
        ("1730", "17:30"),
        (" 8 : 15 ", "08:15"),
        ("0", "00:00"),
        ("23:59", "23:59"),
    ],
)
def test_time_input_is_zero_padded(raw, expected):
    assert normalize_time_input(raw) == expected


@pytest.mark.parametrize("raw", ["24", "24:00", "12:60", "2575", "jam tujuh", "", None, "7:3:0"])
def test_time_input_rejects_garbage_and_out_of_range(raw):
    assert normalize_time_input(raw) is None


@pytest.mark.parametrize(
    "raw,iso",
    [
        ("2024-01-31", "2024-01-31"),
        ("2024/1/5", "2024-01-05"),
        ("31-01-2024", "2024-01-31"),
        ("5/1/2024", "2024-01-05"),
        ("29-02-2024", "2024-02-29"),
    ],
)
def test_calendar_date_both_orders(raw, iso):
    parsed = parse_calendar_date(raw)
    assert parsed.raw == raw
    assert parsed.iso == iso


@pytest.mark.parametrize("raw", ["2024-13-01", "99-01-2024", "31-04-2024", "29-02-2023", "kemarin", ""])
def test_calendar_date_rejects_invalid(raw):
    assert parse_calendar_date(raw).iso is None


def test_yes_no_tri_state():
    assert parse_yes_no("Ya") is True
    assert parse_yes_no("ok deh") is True
    assert parse_yes_no("tidak") is False
    assert parse_yes_no("ga") is False
    assert parse_yes_no("hmm") is None
    assert parse_yes_no("") is None


def test_yes_no_treats_not_yet_as_no():
    assert parse_yes_no("belum") is False


def test_yes_no_needs_word_boundaries():
    # "yayasan" contains "ya" but is not an answer
    assert parse_yes_no("yayasan") is None


def test_checkin_answer_tolerates_dropped_prefix():
    assert parse_checkin_answer("Sudah ✅") is CheckinAnswer.DONE
    assert parse_checkin_answer("udah kok") is CheckinAnswer.DONE
    assert parse_checkin_answer("Belum ⏳") is CheckinAnswer.NOT_DONE
    assert parse_checkin_answer("nanti") is None


def test_delivery_answer_requires_delivery_keyword():
    assert parse_delivery_answer("sudah") is None
    assert parse_delivery_answer("belum") is None
    assert parse_delivery_answer("Sudah melahirkan 👶") is DeliveryAnswer.DELIVERED
    assert parse_delivery_answer("udah lahiran kemarin") is DeliveryAnswer.DELIVERED
    assert parse_delivery_answer("Belum melahirkan ⏳") is DeliveryAnswer.NOT_DELIVERED
    assert parse_delivery_answer("melahirkan") is None


def test_greetings_and_always_commands():
    assert is_greeting("Halo")
    assert is_greeting(" assalamualaikum ")
    assert not is_greeting("halo bu")
    assert is_always_command("MENU")
    assert is_always_command("hapus")
    assert not is_always_command("stop")


def test_admin_command_parsing():
    assert parse_admin_command("admin").action == "help"
    cmd = parse_admin_command("admin allow 62812 345")
    assert cmd.action == "allow"
    assert cmd.raw_args == "62812 345"
    purge = parse_admin_command("Admin purge logs 30")
    assert purge.action == "purge"
    assert purge.args == ["logs", "30"]
    assert parse_admin_command("administrasi") is None


def test_wa_id_normalization():
    assert normalize_wa_id("+62 812-3456") == "628123456@c.us"
    assert normalize_wa_id("628123@s.whatsapp.net") == "628123@s.whatsapp.net"
    assert normalize_wa_id("   ") is None
    assert parse_wa_id_list("62811, 62812 ,,") == {"62811@c.us", "62812@c.us"}
