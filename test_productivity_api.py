from datetime import datetime, time
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

from pharmacy_portal.main import app
from pharmacy_portal.api.dependencies.auth import get_current_active_user, require_admin, require_manager
from pharmacy_portal.api.dependencies.services import get_container, get_productivity_service
from pharmacy_portal.db.database import get_async_session
from pharmacy_portal.models.pac import Pac
from pharmacy_portal.models.user import User, UserRole
from pharmacy_portal.services.audit_log_service import AuditLogService
from pharmacy_portal.services.pac_service import PacService
from pharmacy_portal.services.cache import TTLCache
from pharmacy_portal.services.productivity_service import ProductivityService
from pharmacy_portal.services.user_service import UserService
from test_productivity_service import BrokenPacRepo, FakePacRepo, make_record


class TestProductivityApi:
    """HTTP surface with storage and authentication replaced"""

    def setup_method(self):
        self.user = User(id=1, username="alice", hashed_password="x", role=UserRole.CHECKER, is_active=True)
        self.repo = FakePacRepo(
            records=[
                make_record("alice", 10, time(0, 0), time(0, 1)),
                make_record("alice", 20, time(0, 0), time(0, 2)),
                make_record("alice", 5, time(0, 0), time(0, 0, 30)),
            ],
            users=["alice", "bob"],
        )
        self.service = ProductivityService(self.repo, cache=TTLCache("api"))
        self.mock_db = AsyncMock()

        app.dependency_overrides[get_current_active_user] = lambda: self.user
        app.dependency_overrides[get_productivity_service] = lambda: self.service
        app.dependency_overrides[get_container] = lambda: SimpleNamespace(
            productivity_service=self.service,
            settings=SimpleNamespace(STREAM_QUEUE_SIZE=4, STREAM_HEARTBEAT_SECONDS=1),
        )
        app.dependency_overrides[get_async_session] = lambda: self.mock_db
        self.client = TestClient(app)

    def teardown_method(self):
        app.dependency_overrides.clear()

    def test_user_page(self):
        response = self.client.get("/api/v1/productivity/users", params={"page": 0, "size": 5})

        assert response.status_code == 200
        body = response.json()
        assert body["totalElements"] == 1
        assert body["content"][0]["username"] == "alice"
        assert body["content"][0]["avgTimePerPouch"] == 6.0
        assert body["content"][0]["avgPouchesPerHour"] == 600.0

    def test_user_page_rejects_negative_page(self):
        response = self.client.get("/api/v1/productivity/users", params={"page": -1})

        assert response.status_code == 422

    def test_single_user(self):
        response = self.client.get("/api/v1/productivity/users/bob")

        assert response.status_code == 200
        assert response.json()["totalSubmissions"] == 0

    def test_unknown_user_is_404(self):
        response = self.client.get("/api/v1/productivity/users/mallory")

        assert response.status_code == 404

    def test_overall_includes_chart(self):
        response = self.client.get("/api/v1/productivity/overall")

        assert response.status_code == 200
        body = response.json()
        assert body["username"] == "Overall"
        assert body["totalPouchesChecked"] == 35
        assert len(body["chartData"]["labels"]) == 7

    def test_storage_failure_is_503(self):
        self.service = ProductivityService(BrokenPacRepo(), cache=TTLCache("broken"))

        response = self.client.get("/api/v1/productivity/overall")

        assert response.status_code == 503

    def test_stream_unavailable_when_snapshot_fails(self):
        self.service = ProductivityService(BrokenPacRepo(), cache=TTLCache("broken"))

        response = self.client.get("/api/v1/productivity/overall/stream")

        assert response.status_code == 503
        assert len(self.service.overall_broadcaster) == 0

    def test_pac_with_end_before_start_is_rejected(self):
        response = self.client.post(
            "/api/v1/pac/",
            json={"store": "Main", "startTime": "09:00", "endTime": "08:00", "pouchesChecked": 5},
        )

        assert response.status_code == 422
        self.mock_db.add.assert_not_called()

    def test_pac_responses_require_manager(self):
        response = self.client.get("/api/v1/pac/responses")

        assert response.status_code == 403

    def test_pac_responses_for_manager(self):
        app.dependency_overrides[require_manager] = lambda: self.user
        self.mock_db.execute.side_effect = AssertionError("month is validated before any query")

        response = self.client.get("/api/v1/pac/responses", params={"month": 13})

        assert response.status_code == 422

    def _page(self):
        response = self.client.get("/api/v1/productivity/users")
        assert response.status_code == 200
        return {item["username"]: item for item in response.json()["content"]}

    def test_submitted_pac_shows_in_next_page(self):
        assert self._page()["alice"]["totalSubmissions"] == 3

        def store(pac):
            self.repo.records.append(make_record("alice", pac.pouches_checked, pac.start_time, pac.end_time))

        def assign_identity(pac):
            pac.id = 4
            pac.submission_date = datetime(2024, 5, 1, 8, 10)

        self.mock_db.add = MagicMock(side_effect=store)
        self.mock_db.refresh = AsyncMock(side_effect=assign_identity)

        with patch.object(UserService, "get_by_username", AsyncMock(return_value=self.user)):
            response = self.client.post(
                "/api/v1/pac/",
                json={"store": "Main", "startTime": "08:00", "endTime": "08:10", "pouchesChecked": 5},
            )

        assert response.status_code == 201
        assert response.json()["id"] == 4
        page = self._page()
        assert page["alice"]["totalSubmissions"] == 4
        assert page["alice"]["totalPouchesChecked"] == 40

    def test_deleted_pac_drops_from_next_page(self):
        app.dependency_overrides[require_manager] = lambda: self.user
        assert self._page()["alice"]["totalSubmissions"] == 3

        pac = Pac(id=1, user_id=1, store="Main", start_time=time(0, 0), end_time=time(0, 1), pouches_checked=10)
        self.mock_db.delete = AsyncMock(side_effect=lambda _: self.repo.records.pop(0))

        with patch.object(PacService, "get_pac", AsyncMock(return_value=pac)), \
                patch.object(AuditLogService, "log_event", AsyncMock()) as log_event:
            response = self.client.delete("/api/v1/pac/1")

        assert response.status_code == 204
        log_event.assert_awaited_once()
        page = self._page()
        assert page["alice"]["totalSubmissions"] == 2
        assert page["alice"]["totalPouchesChecked"] == 25

    def test_deleted_user_drops_from_next_page(self):
        admin = User(id=1, username="root", hashed_password="x", role=UserRole.ADMIN, is_active=True)
        bob = User(id=2, username="bob", hashed_password="x", role=UserRole.CHECKER, is_active=True)
        app.dependency_overrides[require_admin] = lambda: admin
        self.repo.records.append(make_record("bob", 6, time(9, 0), time(9, 6)))

        assert set(self._page()) == {"alice", "bob"}
        assert self.client.get("/api/v1/productivity/overall").json()["totalSubmissions"] == 4

        async def cascade(db, user_id):
            self.repo.records = [r for r in self.repo.records if r.username != "bob"]
            self.repo.users.discard("bob")
            return True

        with patch.object(UserService, "get_by_id", AsyncMock(return_value=bob)), \
                patch.object(UserService, "delete", AsyncMock(side_effect=cascade)), \
                patch.object(AuditLogService, "log_event", AsyncMock()):
            response = self.client.delete("/api/v1/users/2")

        assert response.status_code == 204
        assert set(self._page()) == {"alice"}
        assert self.client.get("/api/v1/productivity/overall").json()["totalSubmissions"] == 3

    def test_renamed_user_shows_new_name_in_next_page(self):
        assert set(self._page()) == {"alice"}

        renamed = User(id=1, username="alicia", hashed_password="x", role=UserRole.CHECKER, is_active=True)

        async def rename(db, user_id, **fields):
            self.repo.records = [r.model_copy(update={"username": "alicia"}) for r in self.repo.records]
            return renamed

        with patch.object(UserService, "get_by_id", AsyncMock(return_value=self.user)), \
                patch.object(UserService, "get_by_username", AsyncMock(return_value=None)), \
                patch.object(UserService, "update", AsyncMock(side_effect=rename)):
            response = self.client.patch("/api/v1/users/1", json={"username": "alicia"})

        assert response.status_code == 200
        assert response.json()["username"] == "alicia"
        assert set(self._page()) == {"alicia"}
