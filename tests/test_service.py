#!/usr/bin/env python
"""
Tests for the calendar operations, run against the FakeNextcloud server.
"""
import logging
from unittest import mock
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from .fixture_helpers import BASE_URL
from .fixture_helpers import HOME
from .fixture_helpers import PRINCIPALS
from .fixture_helpers import PUBLIC
from .fixture_helpers import SAMPLE_TIMEZONE
from .fixture_helpers import error_response
from caldav_service import CalDAVService
from caldav_service.lib import error
from caldav_service.objects import ComponentKind
from caldav_service.objects import ResourceKind
from caldav_service.service import validate_timezone

HOME_URL = "https://cloud.example.com" + HOME


@pytest.fixture
def service(manager):
    return CalDAVService(manager)


@pytest_asyncio.fixture
async def user_service(service):
    await service.initialize_client_for_user_view()
    return service


class TestFindAllCalendars:
    @pytest.mark.asyncio
    async def test_ordered_calendars(self, service, server) -> None:
        server.calendars["unordered"] = {"displayname": "Unordered", "components": ["VEVENT"]}
        server.calendars["holidays"] = {
            "displayname": "Holidays",
            "order": 1,
            "source": "https://example.org/holidays.ics",
        }
        await service.initialize_client_for_user_view()

        calendars = await service.find_all_calendars()
        assert [c.id for c in calendars] == ["personal", "holidays", "tasks", "unordered"]
        assert calendars[0].url == HOME_URL + "personal/"
        assert calendars[0].home_url == HOME_URL
        assert calendars[1].kind is ResourceKind.SUBSCRIPTION
        assert calendars[2].supports(ComponentKind.VTODO)

    @pytest.mark.asyncio
    async def test_equal_order_sorted_by_url(self, service, server) -> None:
        server.calendars["b"] = {"displayname": "B", "order": 5}
        server.calendars["a"] = {"displayname": "A", "order": 5}
        await service.initialize_client_for_user_view()
        calendars = await service.find_all_calendars()
        assert [c.id for c in calendars] == ["personal", "tasks", "a", "b"]

    @pytest.mark.asyncio
    async def test_inbox_and_outbox_are_no_calendars(self, service, server) -> None:
        await service.initialize_client_for_user_view()
        calendars = await service.find_all_calendars()
        assert "inbox" not in [c.id for c in calendars]
        assert "outbox" not in [c.id for c in calendars]

    @pytest.mark.asyncio
    async def test_requires_user_view(self, service, server) -> None:
        with pytest.raises(error.NotAuthenticatedError):
            await service.find_all_calendars()
        await service.initialize_client_for_public_view()
        with pytest.raises(error.NotAuthenticatedError):
            await service.find_all_calendars()
        assert server.requests == []


class TestPublicCalendars:
    @pytest.mark.asyncio
    async def test_tokens(self, service, server, caplog) -> None:
        server.public["abc"] = {"displayname": "Team", "components": ["VEVENT"]}
        server.public["def"] = {"displayname": "Club", "color": "#ff0000"}
        await service.initialize_client_for_public_view()

        with caplog.at_level(logging.INFO, logger="caldav_service"):
            calendars = await service.find_public_calendars_by_tokens(
                ["def", "gone", "abc", "abc"]
            )

        assert [c.id for c in calendars] == ["abc", "def"]
        assert calendars[0].url == BASE_URL + "public-calendars/abc/"
        assert calendars[1].color == "#ff0000"
        assert "gone" in caplog.text
        assert sorted(r.path for r in server.requests) == [
            PUBLIC + "abc/",
            PUBLIC + "def/",
            PUBLIC + "gone/",
        ]

    @pytest.mark.asyncio
    async def test_no_tokens(self, service, server) -> None:
        await service.initialize_client_for_public_view()
        assert await service.find_public_calendars_by_tokens([]) == []
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_unreachable_server_omits_everything(self, service, server) -> None:
        await service.initialize_client_for_public_view()
        server.unreachable = True
        assert await service.find_public_calendars_by_tokens(["abc"]) == []

    @pytest.mark.asyncio
    async def test_interrupt_is_not_swallowed(self, service, server) -> None:
        ## a KeyboardInterrupt would escape the event loop and stop pytest
        class Interrupted(BaseException):
            pass

        server.public["abc"] = {"displayname": "Team"}
        await service.initialize_client_for_public_view()
        home = service.manager.get_session().public_calendar_home
        with mock.patch.object(home, "find", AsyncMock(side_effect=Interrupted)):
            with pytest.raises(Interrupted):
                await service.find_public_calendars_by_tokens(["abc", "def"])

    @pytest.mark.asyncio
    async def test_requires_public_view(self, user_service, server) -> None:
        with pytest.raises(error.SessionModeError):
            await user_service.find_public_calendars_by_tokens(["abc"])


class TestSchedulingBoxes:
    @pytest.mark.asyncio
    async def test_inbox_and_outbox(self, user_service) -> None:
        inbox = await user_service.find_scheduling_inbox()
        outbox = await user_service.find_scheduling_outbox()
        assert inbox.url == HOME_URL + "inbox/"
        assert inbox.kind is ResourceKind.SCHEDULE_INBOX
        assert inbox.display_name is None
        assert outbox.url == HOME_URL + "outbox/"
        assert outbox.kind is ResourceKind.SCHEDULE_OUTBOX

    @pytest.mark.asyncio
    async def test_no_boxes(self, user_service, server) -> None:
        server.schedule_boxes = False
        assert await user_service.find_scheduling_inbox() is None
        assert await user_service.find_scheduling_outbox() is None


class TestCreateCalendar:
    @pytest.mark.asyncio
    async def test_create(self, user_service, server) -> None:
        cal = await user_service.create_calendar(
            "Team Events", "#0082c9", [ComponentKind.VEVENT, "vtodo"], 1, None
        )
        assert cal.id == "team-events"
        assert cal.url == HOME_URL + "team-events/"
        assert cal.display_name == "Team Events"
        assert cal.components == frozenset({"VEVENT", "VTODO"})
        assert cal.order == 1
        ## as normalized by the server
        assert cal.color == "#0082C9FF"

        mkcol = server.requests_for("MKCOL")
        assert [r.path for r in mkcol] == [HOME + "team-events/"]
        assert b"<C:calendar/>" in mkcol[0].body

        calendars = await user_service.find_all_calendars()
        assert [c.id for c in calendars] == ["personal", "team-events", "tasks"]

    @pytest.mark.asyncio
    async def test_name_collision(self, user_service, server) -> None:
        first = await user_service.create_calendar("Personal", None, ["VEVENT"], None, None)
        second = await user_service.create_calendar("Personal", None, ["VEVENT"], None, None)
        assert first.id == "personal-1"
        assert second.id == "personal-2"
        assert first.display_name == second.display_name == "Personal"

    @pytest.mark.asyncio
    async def test_unsluggable_name(self, user_service, server) -> None:
        cal = await user_service.create_calendar("日本", None, ["VEVENT"], None, None)
        assert cal.id
        assert cal.display_name == "日本"

    @pytest.mark.asyncio
    async def test_timezone(self, user_service, server) -> None:
        cal = await user_service.create_calendar(
            "Berlin", None, ["VEVENT"], None, SAMPLE_TIMEZONE
        )
        assert "TZID:Europe/Berlin" in cal.timezone

    @pytest.mark.asyncio
    async def test_invalid_timezone(self, user_service, server) -> None:
        with pytest.raises(ValueError):
            await user_service.create_calendar("Broken", None, ["VEVENT"], None, "Europe/Berlin")
        with pytest.raises(ValueError):
            await user_service.create_calendar(
                "Broken",
                None,
                ["VEVENT"],
                None,
                "BEGIN:VCALENDAR\nVERSION:2.0\nPRODID:-//x//x//EN\nEND:VCALENDAR\n",
            )
        assert server.requests_for("MKCOL") == []

    @pytest.mark.asyncio
    async def test_invalid_component(self, user_service, server) -> None:
        with pytest.raises(ValueError):
            await user_service.create_calendar("Cards", None, ["VCARD"], None, None)
        assert server.requests_for("MKCOL") == []

    @pytest.mark.asyncio
    async def test_rejected(self, user_service, server) -> None:
        server.overrides[("MKCOL", HOME + "full/")] = error_response(507, "Insufficient Storage")
        with pytest.raises(error.CollectionCreateError):
            await user_service.create_calendar("Full", None, ["VEVENT"], None, None)

    @pytest.mark.asyncio
    async def test_forbidden(self, user_service, server) -> None:
        server.overrides[("MKCOL", HOME + "work/")] = error_response(403, "Forbidden")
        with pytest.raises(error.CollectionCreateError) as excinfo:
            await user_service.create_calendar("Work", None, ["VEVENT"], None, None)
        assert excinfo.value.reason == "Forbidden"
        assert isinstance(excinfo.value.__cause__, error.AuthorizationError)

    @pytest.mark.asyncio
    async def test_created_behind_our_back(self, user_service, server) -> None:
        await user_service.find_all_calendars()
        server.calendars["work"] = {"displayname": "Work"}
        with pytest.raises(error.CollectionCreateError) as excinfo:
            await user_service.create_calendar("Work", None, ["VEVENT"], None, None)
        assert isinstance(excinfo.value, error.MkcolError)

        ## the children are listed again, so the next attempt picks a free name
        calendar = await user_service.create_calendar("Work", None, ["VEVENT"], None, None)
        assert calendar.id == "work-1"

    @pytest.mark.asyncio
    async def test_requires_user_view(self, service, server) -> None:
        await service.initialize_client_for_public_view()
        with pytest.raises(error.NotAuthenticatedError):
            await service.create_calendar("Nope", None, ["VEVENT"], None, None)

    def test_validate_timezone(self) -> None:
        assert validate_timezone(SAMPLE_TIMEZONE) == SAMPLE_TIMEZONE


class TestCreateSubscription:
    @pytest.mark.asyncio
    async def test_create(self, user_service, server) -> None:
        cal = await user_service.create_subscription(
            "Holidays", "#ff0000", "https://example.org/holidays.ics", 4
        )
        assert cal.kind is ResourceKind.SUBSCRIPTION
        assert cal.is_subscription
        assert cal.source_url == "https://example.org/holidays.ics"
        assert cal.display_name == "Holidays"
        assert cal.order == 4

        mkcol = server.requests_for("MKCOL")[0]
        assert b"subscribed" in mkcol.body
        assert mkcol.headers["X-NC-CalDAV-Webcal-Caching"] == "On"


class TestBirthdayCalendar:
    @pytest.mark.asyncio
    async def test_not_enabled(self, user_service) -> None:
        assert await user_service.get_birthday_calendar() is None

    @pytest.mark.asyncio
    async def test_enable(self, user_service, server) -> None:
        cal = await user_service.enable_birthday_calendar()
        assert cal.id == "contact_birthdays"
        assert cal.url == HOME_URL + "contact_birthdays/"
        assert b"enable-birthday-calendar" in server.requests_for("POST")[0].body
        assert await user_service.get_birthday_calendar() == cal

    @pytest.mark.asyncio
    async def test_enable_twice(self, user_service, server) -> None:
        first = await user_service.enable_birthday_calendar()
        server.overrides[("POST", HOME)] = error_response(400, "Birthday calendar exists")
        second = await user_service.enable_birthday_calendar()
        assert first == second

    @pytest.mark.asyncio
    async def test_enable_fails(self, user_service, server) -> None:
        server.overrides[("POST", HOME)] = error_response(500, "Internal Server Error")
        with pytest.raises(error.PostError):
            await user_service.enable_birthday_calendar()


class TestPrincipals:
    @pytest.mark.asyncio
    async def test_current_user_principal(self, user_service, server) -> None:
        requests = len(server.requests)
        principal = user_service.get_current_user_principal()
        assert principal.url == BASE_URL + "principals/users/alice/"
        assert principal.display_name == "Alice Adams"
        assert principal.email == "alice@example.com"
        assert principal.calendar_home_urls == (HOME,)
        assert principal.schedule_inbox_url == HOME + "inbox/"
        assert len(server.requests) == requests

    @pytest.mark.asyncio
    async def test_current_user_principal_public(self, service) -> None:
        with pytest.raises(error.NotAuthenticatedError):
            service.get_current_user_principal()
        await service.initialize_client_for_public_view()
        with pytest.raises(error.NotAuthenticatedError):
            service.get_current_user_principal()

    @pytest.mark.asyncio
    async def test_search(self, user_service, server) -> None:
        principals = await user_service.find_principals_by_display_name("bo")
        assert sorted(p.display_name for p in principals) == ["Boardroom", "Bob Brown"]
        by_name = {p.display_name: p for p in principals}
        assert by_name["Bob Brown"].url == BASE_URL + "principals/users/bob/"
        assert by_name["Boardroom"].calendar_user_type == "ROOM"

        report = server.requests_for("REPORT")[0]
        assert report.path == PRINCIPALS
        assert b"principal-property-search" in report.body

    @pytest.mark.asyncio
    async def test_search_nothing_found(self, user_service) -> None:
        assert await user_service.find_principals_by_display_name("zzz") == []

    @pytest.mark.asyncio
    async def test_empty_query(self, user_service, server) -> None:
        assert await user_service.find_principals_by_display_name("") == []
        assert await user_service.find_principals_by_display_name("   ") == []
        assert server.requests_for("REPORT") == []

    @pytest.mark.asyncio
    async def test_search_requires_user_view(self, service) -> None:
        await service.initialize_client_for_public_view()
        with pytest.raises(error.NotAuthenticatedError):
            await service.find_principals_by_display_name("bob")

    @pytest.mark.asyncio
    async def test_by_url(self, user_service) -> None:
        principal = await user_service.find_principal_by_url(PRINCIPALS + "users/bob/")
        assert principal.url == BASE_URL + "principals/users/bob/"
        assert principal.calendar_user_addresses == ("mailto:bob@example.com",)
        assert principal.calendar_home_urls == ()

    @pytest.mark.asyncio
    async def test_by_url_not_found(self, user_service) -> None:
        with pytest.raises(error.PrincipalNotFoundError):
            await user_service.find_principal_by_url(PRINCIPALS + "users/nobody/")

    @pytest.mark.asyncio
    async def test_by_url_not_a_principal(self, user_service) -> None:
        with pytest.raises(error.PrincipalNotFoundError) as excinfo:
            await user_service.find_principal_by_url(HOME + "personal/")
        assert isinstance(excinfo.value, error.NotFoundError)

    @pytest.mark.asyncio
    async def test_by_url_on_other_server(self, user_service, server) -> None:
        requests_before = len(server.requests)
        with pytest.raises(error.PrincipalNotFoundError) as excinfo:
            await user_service.find_principal_by_url("https://other.example.org/principals/x/")
        assert isinstance(excinfo.value.__cause__, ValueError)
        assert len(server.requests) == requests_before
