import json
import pytest
from datetime import date, datetime, time

from pharmacy_portal.core.exceptions import DataUnavailableError, UserNotFoundError
from pharmacy_portal.schemas.pac import PacRecord
from pharmacy_portal.schemas.productivity import OVERALL_USERNAME, UserProductivity
from pharmacy_portal.services import productivity_calculator as calculator
from pharmacy_portal.services.cache import TTLCache
from pharmacy_portal.services.productivity_service import ProductivityService


class FakePacRepo:
    """In-memory stand-in for SqlAlchemyPacRepository"""

    def __init__(self, records=None, users=None, daily_counts=None):
        self.records = list(records or [])
        self.users = set(users or [r.username for r in self.records])
        self.daily_counts = daily_counts or []
        self.page_calls = 0
        self.find_all_calls = 0
        self.last_range = None

    async def find_all(self):
        self.find_all_calls += 1
        return list(self.records)

    async def find_by_user(self, username):
        return [r for r in self.records if r.username == username]

    async def user_exists(self, username):
        return username in self.users

    async def get_user_productivity_page(self, page, size):
        self.page_calls += 1
        result = calculator.paginate(calculator.compute_user_snapshots(self.records), page, size)
        rows = [
            (s.username, s.total_submissions, s.total_pouches_checked, s.avg_time_per_pouch, s.avg_pouches_per_hour)
            for s in result.content
        ]
        return rows, result.total_elements

    async def get_daily_submission_counts(self, start, end):
        self.last_range = (start, end)
        return self.daily_counts


class BrokenPacRepo(FakePacRepo):
    async def find_all(self):
        raise DataUnavailableError("database is down")


class FakeTransport:
    def __init__(self):
        self.sent = []

    async def send(self, message):
        self.sent.append(message)

    async def close(self):
        pass


def make_record(username, pouches, start, end):
    return PacRecord(username=username, store="Main", start_time=start, end_time=end, pouches_checked=pouches)


class TestProductivityService:
    def setup_method(self):
        self.repo = FakePacRepo(
            records=[
                make_record("alice", 10, time(0, 0), time(0, 1)),
                make_record("alice", 20, time(0, 0), time(0, 2)),
                make_record("alice", 5, time(0, 0), time(0, 0, 30)),
                make_record("bob", 6, time(9, 0), time(9, 6)),
            ],
            users=["alice", "bob", "carol"],
        )
        self.service = ProductivityService(self.repo, cache=TTLCache("test"))

    @pytest.mark.asyncio
    async def test_page_is_ranked_and_counted(self):
        page = await self.service.get_all_user_productivity(0, 10)

        assert [s.username for s in page.content] == ["alice", "bob"]
        assert page.total_elements == 2
        assert page.total_pages == 1
        assert page.content[0].avg_pouches_per_hour == pytest.approx(600.0)

    @pytest.mark.asyncio
    async def test_second_read_is_served_from_cache(self):
        first = await self.service.get_all_user_productivity(0, 10)
        second = await self.service.get_all_user_productivity(0, 10)

        assert first == second
        assert self.repo.page_calls == 1
        assert self.service.cache.stats.hits == 1

    @pytest.mark.asyncio
    async def test_pages_are_cached_separately(self):
        await self.service.get_all_user_productivity(0, 1)
        page = await self.service.get_all_user_productivity(1, 1)

        assert [s.username for s in page.content] == ["bob"]
        assert self.repo.page_calls == 2

    @pytest.mark.asyncio
    async def test_new_record_visible_after_notify(self):
        await self.service.get_all_user_productivity(0, 10)
        await self.service.get_overall_productivity()

        self.repo.records.append(make_record("carol", 100, time(10, 0), time(11, 0)))
        await self.service.notify_productivity_update()

        page = await self.service.get_all_user_productivity(0, 10)
        overall = await self.service.get_overall_productivity()
        assert "carol" in [s.username for s in page.content]
        assert overall.total_pouches_checked == 141

    @pytest.mark.asyncio
    async def test_bad_page_arguments(self):
        with pytest.raises(ValueError):
            await self.service.get_all_user_productivity(-1, 10)
        with pytest.raises(ValueError):
            await self.service.get_all_user_productivity(0, 0)

    @pytest.mark.asyncio
    async def test_overall_snapshot(self):
        overall = await self.service.get_overall_productivity()

        assert overall.username == OVERALL_USERNAME
        assert overall.total_submissions == 4
        assert overall.total_pouches_checked == 41
        # alice 600/h, bob 60/h
        assert overall.avg_pouches_per_hour == pytest.approx(330.0)

    @pytest.mark.asyncio
    async def test_overall_is_cached(self):
        await self.service.get_overall_productivity()
        await self.service.get_overall_productivity()

        assert self.repo.find_all_calls == 1

    @pytest.mark.asyncio
    async def test_user_productivity(self):
        snapshot = await self.service.get_user_productivity("alice")

        assert snapshot.total_submissions == 3
        assert snapshot.avg_time_per_pouch == pytest.approx(6.0)

    @pytest.mark.asyncio
    async def test_known_user_without_checks_gets_zeros(self):
        snapshot = await self.service.get_user_productivity("carol")

        assert snapshot == UserProductivity(username="carol")

    @pytest.mark.asyncio
    async def test_unknown_user_raises(self):
        with pytest.raises(UserNotFoundError):
            await self.service.get_user_productivity("mallory")

    @pytest.mark.asyncio
    async def test_chart_data_is_zero_filled(self):
        self.repo.daily_counts = [(date(2024, 5, 3), 4), (date(2024, 5, 7), 2)]

        chart = await self.service.get_chart_data(today=date(2024, 5, 7))

        assert chart.labels == ["May 01", "May 02", "May 03", "May 04", "May 05", "May 06", "May 07"]
        assert chart.pouches_checked == [0, 0, 4, 0, 0, 0, 2]
        assert self.repo.last_range[0] == datetime(2024, 5, 1)

    @pytest.mark.asyncio
    async def test_overall_with_chart(self):
        response = await self.service.get_overall_with_chart(today=date(2024, 5, 7))
        body = response.model_dump(by_alias=True)

        assert body["username"] == OVERALL_USERNAME
        assert body["chartData"]["pouchesChecked"] == [0] * 7

    @pytest.mark.asyncio
    async def test_live_stream_receives_updates(self):
        user_transport = FakeTransport()
        overall_transport = FakeTransport()
        await self.service.open_live_stream(user_transport)
        await self.service.open_aggregate_live_stream(overall_transport)

        self.repo.records.append(make_record("bob", 4, time(12, 0), time(12, 4)))
        await self.service.notify_productivity_update()

        users = json.loads(user_transport.sent[-1])
        overall = json.loads(overall_transport.sent[-1])
        assert len(user_transport.sent) == 2
        assert users[1]["username"] == "bob"
        assert users[1]["totalSubmissions"] == 2
        assert "avgTimeDuration" in users[0]
        assert overall["username"] == OVERALL_USERNAME
        assert overall["totalPouchesChecked"] == 45

    @pytest.mark.asyncio
    async def test_publish_failure_does_not_fail_notify(self):
        service = ProductivityService(BrokenPacRepo(), cache=TTLCache("broken"))
        transport = FakeTransport()
        subscription = await service.open_aggregate_live_stream(transport)

        # Initial snapshot could not be read, so nothing is registered
        assert subscription.closed
        await service.notify_productivity_update()
        assert service.cache.stats.invalidations == 1

    @pytest.mark.asyncio
    async def test_shutdown_closes_streams(self):
        await self.service.open_live_stream(FakeTransport())
        await self.service.open_aggregate_live_stream(FakeTransport())

        await self.service.shutdown()

        assert len(self.service.user_broadcaster) == 0
        assert len(self.service.overall_broadcaster) == 0
