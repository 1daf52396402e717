import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.ext.asyncio import AsyncSession

from pharmacy_portal.models.audit_log import AuditLog
from pharmacy_portal.services.audit_log_service import AuditLogService, MAX_DETAILS_LENGTH


class TestAuditLogService:
    def setup_method(self):
        self.mock_db = AsyncMock(spec=AsyncSession)

    @pytest.mark.asyncio
    async def test_log_event_saves_entry(self):
        entry = await AuditLogService.log_event(
            self.mock_db,
            action="CHANGE_ROLE",
            category="USER_MANAGEMENT",
            details="alice: USER -> CHECKER",
            performed_by="admin",
            user_id=3,
        )

        self.mock_db.add.assert_called_once_with(entry)
        self.mock_db.commit.assert_awaited_once()
        assert entry.performed_by == "admin"
        assert entry.user_id == 3

    @pytest.mark.asyncio
    async def test_long_details_are_truncated(self):
        entry = await AuditLogService.log_event(
            self.mock_db,
            action="DELETE_PAC",
            category="PAC",
            details="x" * (MAX_DETAILS_LENGTH + 50),
            performed_by="admin",
        )

        assert len(entry.details) == MAX_DETAILS_LENGTH

    @pytest.mark.asyncio
    async def test_get_all_returns_rows(self):
        logs = [AuditLog(id=2, action="B"), AuditLog(id=1, action="A")]
        mock_scalars = MagicMock()
        mock_scalars.all.return_value = logs
        mock_result = MagicMock()
        mock_result.scalars.return_value = mock_scalars
        self.mock_db.execute.return_value = mock_result

        result = await AuditLogService.get_by_category(self.mock_db, "PAC")

        assert result == logs
        self.mock_db.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_clear_all_logs_returns_count(self):
        self.mock_db.execute.return_value = MagicMock(rowcount=7)

        assert await AuditLogService.clear_all_logs(self.mock_db) == 7
        self.mock_db.commit.assert_awaited_once()
