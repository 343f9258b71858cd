"""Tests for reservation parsing, the confirmation window and the harvester."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from tgvmax.data.reservations import (
    UNKNOWN, ReservationHarvester, find_confirm_button_for, needs_confirmation,
    parse_container, parse_french_date, parse_reservation_card_text, parse_time, proximity_score,
)
from tgvmax.data.selectors import CONFIRM_BUTTON_SELECTOR, RESERVATIONS_URL, SHORT_DATE_PATTERN
from tgvmax.exceptions import SessionExpiredError
from tgvmax.models import Reservation
from tests.mocks import MockElement, MockPage


PARIS = ZoneInfo("Europe/Paris")
NOW = datetime(2025, 1, 16, 12, 0, tzinfo=timezone.utc)

TRIP_TEXT = (
    "samedi 18 janvier 2025\n"
    "07h12\nPARIS GARE DE LYON\n"
    "10h05\nMARSEILLE SAINT CHARLES\n"
    "TGV INOUI N° 6103\n"
    "Confirmer"
)


def _reservation(departure: datetime, origin: str = "PARIS GARE DE LYON", destination: str = "MARSEILLE SAINT CHARLES") -> Reservation:
    return Reservation(
        id="r-1", origin=origin, destination=destination, departure=departure,
        departure_time="07h12", train_number="6103",
    )


def _container(origin: str, destination: str, times=("07h12", "10h05"), datetimes=()) -> dict:
    text = f"samedi 18 janvier 2025\n{times[0]}\n{origin}\n{times[1]}\n{destination}\nTGV INOUI N° 6103\nConfirmer"
    return {"text": text, "times": list(times), "datetimes": list(datetimes)}


class TestConfirmationWindow:
    @pytest.mark.parametrize("offset, expected", [
        (timedelta(hours=1), True),
        (timedelta(hours=48), True),
        (timedelta(hours=48, minutes=1), False),
        (timedelta(0), False),
        (timedelta(hours=-1), False),
    ])
    def test_needs_confirmation(self, offset, expected):
        assert needs_confirmation(_reservation(NOW + offset), now=NOW) is expected


class TestParsing:
    @pytest.mark.parametrize("text, expected", [
        ("18h28", (18, 28)),
        ("7:05", (7, 5)),
        ("Départ 09h00", (9, 0)),
        ("25h00", None),
        ("", None),
    ])
    def test_parse_time(self, text, expected):
        assert parse_time(text) == expected

    def test_french_date_without_year_uses_current_year(self):
        assert parse_french_date("le 3 fév.", SHORT_DATE_PATTERN, today=date(2026, 1, 10)) == date(2026, 2, 3)

    def test_impossible_date_is_none(self):
        assert parse_french_date("31 février 2025", SHORT_DATE_PATTERN) is None

    def test_container_with_long_date(self):
        reservation = parse_container(_container("PARIS GARE DE LYON", "MARSEILLE SAINT CHARLES"), 0, confirmable=True, now=NOW)

        assert reservation.origin == "PARIS GARE DE LYON"
        assert reservation.destination == "MARSEILLE SAINT CHARLES"
        assert reservation.departure_time == "07h12"
        assert reservation.arrival_time == "10h05"
        assert reservation.train_number == "6103"
        assert reservation.departure == datetime(2025, 1, 18, 7, 12, tzinfo=PARIS)
        assert reservation.confirmable is True

    def test_container_machine_datetime_wins(self):
        data = _container("PARIS", "LYON", datetimes=["2025-01-20T08:30:00+01:00"])

        reservation = parse_container(data, 0, confirmable=False, now=NOW)

        assert reservation.departure == datetime(2025, 1, 20, 7, 30, tzinfo=timezone.utc)
        assert reservation.confirmable is False

    def test_container_date_only_datetime_uses_departure_time(self):
        data = _container("PARIS", "LYON", datetimes=["2025-01-20"])

        reservation = parse_container(data, 0, confirmable=True, now=NOW)

        assert reservation.departure == datetime(2025, 1, 20, 7, 12, tzinfo=PARIS)

    def test_container_without_stations_uses_placeholders(self):
        data = {"text": "TGV INOUI N° 6103", "times": [], "datetimes": []}

        reservation = parse_container(data, 0, confirmable=True, now=NOW)

        assert reservation.origin == UNKNOWN
        assert reservation.destination == UNKNOWN
        assert reservation.train_number == "6103"

    def test_missing_container_is_none(self):
        assert parse_container(None, 0, confirmable=True) is None

    def test_card_text(self):
        text = "Paris → Lyon\n15 mars 2025 · 08h30\nTGV INOUI 6611\nÀ confirmer"

        reservation = parse_reservation_card_text(text, 0, now=NOW)

        assert reservation.origin == "Paris"
        assert reservation.destination == "Lyon"
        assert reservation.departure_time == "8h30"
        assert reservation.train_number == "6611"
        assert reservation.departure == datetime(2025, 3, 15, 8, 30, tzinfo=PARIS)

    def test_card_without_confirmation_marker_is_skipped(self):
        assert parse_reservation_card_text("Paris → Lyon\n15 mars 2025 · 08h30\nConfirmé", 0, now=NOW) is None


class TestProximity:
    def test_both_stations_beat_one_station(self):
        reservation = _reservation(NOW)

        near_one = proximity_score(["Confirmer", "PARIS GARE DE LYON 07h12"], reservation)
        far_both = proximity_score(["", "", "", "PARIS GARE DE LYON MARSEILLE SAINT CHARLES"], reservation)

        assert far_both < near_one

    def test_unrelated_ancestors(self):
        assert proximity_score(["NICE", "TOULON"], _reservation(NOW)) is None

    def test_unknown_stations_never_match(self):
        assert proximity_score(["Unknown"], _reservation(NOW, UNKNOWN, UNKNOWN)) is None


class TestFindConfirmButton:
    async def test_picks_button_bound_to_reservation(self):
        other = MockElement(ancestor_texts=["", "NICE VILLE TOULON"])
        mine = MockElement(ancestor_texts=["", "PARIS GARE DE LYON MARSEILLE SAINT CHARLES"])
        page = MockPage({CONFIRM_BUTTON_SELECTOR: [other, mine]})

        button, matched = await find_confirm_button_for(page, _reservation(NOW))

        assert button is mine
        assert matched is True

    async def test_falls_back_to_first_visible(self):
        hidden = MockElement(visible=False, ancestor_texts=["NICE"])
        shown = MockElement(ancestor_texts=["TOULON"])
        page = MockPage({CONFIRM_BUTTON_SELECTOR: [shown, hidden]})

        button, matched = await find_confirm_button_for(page, _reservation(NOW))

        assert button is shown
        assert matched is False

    async def test_no_fallback_when_disallowed(self):
        page = MockPage({CONFIRM_BUTTON_SELECTOR: [MockElement(ancestor_texts=["TOULON"])]})

        assert await find_confirm_button_for(page, _reservation(NOW), allow_fallback=False) == (None, False)

    async def test_hidden_button_found_when_visibility_ignored(self):
        hidden = MockElement(visible=False, ancestor_texts=["PARIS GARE DE LYON MARSEILLE SAINT CHARLES"])
        page = MockPage({CONFIRM_BUTTON_SELECTOR: [hidden]})

        button, _ = await find_confirm_button_for(page, _reservation(NOW), allow_fallback=False, visible_only=False)

        assert button is hidden

    async def test_one_station_binding_ignored_when_both_required(self):
        neighbour = MockElement(ancestor_texts=["", "07h40 MARSEILLE SAINT CHARLES 10h55 NICE VILLE"])
        page = MockPage({CONFIRM_BUTTON_SELECTOR: [neighbour]})

        found = await find_confirm_button_for(page, _reservation(NOW), allow_fallback=False, both_stations=True)

        assert found == (None, False)


class TestHarvester:
    def _page(self, buttons) -> MockPage:
        return MockPage({CONFIRM_BUTTON_SELECTOR: buttons})

    async def test_every_confirm_button_yields_a_reservation(self):
        page = self._page([
            MockElement(container=_container("PARIS", "LYON")),
            MockElement(container=_container("LYON", "MARSEILLE")),
            MockElement(disabled=True, container=_container("MARSEILLE", "NICE")),
        ])

        reservations = await ReservationHarvester(page, "Alice", proof_screenshots=False).fetch_pending_reservations()

        assert [r.confirmable for r in reservations] == [True, True, False]
        assert [r.origin for r in reservations] == ["PARIS", "LYON", "MARSEILLE"]

    async def test_redirect_to_login_means_session_expired(self):
        page = self._page([])
        page.redirects = {RESERVATIONS_URL: "https://www.maxjeune-tgvinoui.sncf/sncf-connect/login?next=mes-voyages"}

        with pytest.raises(SessionExpiredError):
            await ReservationHarvester(page, "Alice").fetch_pending_reservations()

    async def test_no_confirm_buttons(self):
        assert await ReservationHarvester(self._page([]), "Alice").fetch_pending_reservations() == []

    async def test_unparseable_buttons_yield_empty_list(self):
        page = self._page([MockElement(container=None), MockElement(container=None)])

        assert await ReservationHarvester(page, "Alice").fetch_pending_reservations() == []

    async def test_unparseable_button_is_skipped(self):
        page = self._page([MockElement(container=None), MockElement(container=_container("PARIS", "LYON"))])

        reservations = await ReservationHarvester(page, "Alice").fetch_pending_reservations()

        assert [r.destination for r in reservations] == ["LYON"]

    async def test_card_strategy_takes_precedence(self):
        disabled_button = MockElement(disabled=True)
        page = self._page([MockElement(container=_container("PARIS", "LYON"))])
        page.add(".reservation-card",
                 MockElement(text="Paris → Lyon\n15 mars 2025 · 08h30\nÀ confirmer", children={CONFIRM_BUTTON_SELECTOR: disabled_button}),
                 MockElement(text="Lyon → Nice\n16 mars 2025 · 09h00\nConfirmé"))

        reservations = await ReservationHarvester(page, "Alice").fetch_pending_reservations()

        assert len(reservations) == 1
        assert reservations[0].origin == "Paris"
        assert reservations[0].confirmable is False

    async def test_proof_screenshot(self, tmp_path):
        page = self._page([MockElement(container=_container("PARIS", "LYON"))])
        harvester = ReservationHarvester(page, "Alice", proof_screenshots=True)

        await harvester.fetch_pending_reservations()

        assert harvester.last_screenshot_path is not None
        assert "reservations_page" in harvester.last_screenshot_path
        assert harvester.last_screenshot_path.startswith(str(tmp_path))
