import pytest
from unittest.mock import AsyncMock, patch, MagicMock
from datetime import datetime, timedelta, timezone
from jose import jwt

from pharmacy_portal.services.security_service import SecurityService
from pharmacy_portal.models.user import User, UserRole
from sqlalchemy.ext.asyncio import AsyncSession


class TestSecurityService:
    """Unit tests for SecurityService"""

    def setup_method(self):
        self.mock_db = AsyncMock(spec=AsyncSession)
        self.test_user = User(
            id=1,
            username="testuser",
            hashed_password="$2b$12$test_hashed_password",
            role=UserRole.CHECKER,
            is_active=True,
        )

    def _mock_first(self, value):
        mock_scalars = MagicMock()
        mock_scalars.first.return_value = value

        mock_result = MagicMock()
        mock_result.scalars.return_value = mock_scalars

        self.mock_db.execute.return_value = mock_result

    def test_create_password_hash(self):
        password = "testpassword123"
        hash_result = SecurityService.create_password_hash(password)

        assert hash_result != password
        assert hash_result.startswith("$2b$")

    def test_verify_password_correct(self):
        password = "testpassword123"
        hash_password = SecurityService.create_password_hash(password)

        assert SecurityService.verify_password(password, hash_password) is True

    def test_verify_password_incorrect(self):
        hash_password = SecurityService.create_password_hash("testpassword123")

        assert SecurityService.verify_password("wrongpassword", hash_password) is False

    @pytest.mark.asyncio
    async def test_get_user_by_username_found(self):
        self._mock_first(self.test_user)

        result = await SecurityService.get_user_by_username(self.mock_db, "testuser")

        assert result == self.test_user
        self.mock_db.execute.assert_called_once()

    @pytest.mark.asyncio
    async def test_get_user_by_username_not_found(self):
        self._mock_first(None)

        result = await SecurityService.get_user_by_username(self.mock_db, "nonexistent")

        assert result is None
        self.mock_db.execute.assert_called_once()

    @pytest.mark.asyncio
    async def test_get_user_by_id_found(self):
        self._mock_first(self.test_user)

        result = await SecurityService.get_user_by_id(self.mock_db, 1)

        assert result == self.test_user

    @pytest.mark.asyncio
    async def test_authenticate_user_success(self):
        password = "testpassword123"
        user = User(
            id=1,
            username="testuser",
            hashed_password=SecurityService.create_password_hash(password),
            role=UserRole.USER,
            is_active=True,
        )

        with patch.object(SecurityService, 'get_user_by_username', return_value=user):
            result = await SecurityService.authenticate_user(self.mock_db, "testuser", password)
            assert result == user

    @pytest.mark.asyncio
    async def test_authenticate_user_wrong_password(self):
        user = User(
            id=1,
            username="testuser",
            hashed_password=SecurityService.create_password_hash("testpassword123"),
            role=UserRole.USER,
            is_active=True,
        )

        with patch.object(SecurityService, 'get_user_by_username', return_value=user):
            result = await SecurityService.authenticate_user(self.mock_db, "testuser", "wrongpassword")
            assert result is None

    @pytest.mark.asyncio
    async def test_authenticate_user_not_found(self):
        with patch.object(SecurityService, 'get_user_by_username', return_value=None):
            result = await SecurityService.authenticate_user(self.mock_db, "nonexistent", "testpassword123")
            assert result is None

    @patch('pharmacy_portal.services.security_service.settings')
    def test_create_access_token(self, mock_settings):
        mock_settings.SECRET_KEY = "test_secret_key"
        mock_settings.ALGORITHM = "HS256"

        token = SecurityService.create_access_token({"sub": "1"}, timedelta(minutes=30))

        decoded = jwt.decode(token, "test_secret_key", algorithms=["HS256"])
        assert decoded["sub"] == "1"
        assert decoded["type"] == "access"

    @patch('pharmacy_portal.services.security_service.settings')
    def test_create_refresh_token(self, mock_settings):
        mock_settings.SECRET_KEY = "test_secret_key"
        mock_settings.ALGORITHM = "HS256"

        token = SecurityService.create_refresh_token({"sub": "1"}, timedelta(days=7))

        decoded = jwt.decode(token, "test_secret_key", algorithms=["HS256"])
        assert decoded["type"] == "refresh"
        assert "jti" in decoded

    @patch('pharmacy_portal.services.security_service.settings')
    def test_create_tokens_carry_id_and_role(self, mock_settings):
        mock_settings.SECRET_KEY = "test_secret_key"
        mock_settings.ALGORITHM = "HS256"
        mock_settings.ACCESS_TOKEN_EXPIRE_MINUTES = 30
        mock_settings.REFRESH_TOKEN_EXPIRE_DAYS = 7

        tokens = SecurityService.create_tokens(self.test_user)

        assert tokens["token_type"] == "bearer"
        access_decoded = jwt.decode(tokens["access_token"], "test_secret_key", algorithms=["HS256"])
        refresh_decoded = jwt.decode(tokens["refresh_token"], "test_secret_key", algorithms=["HS256"])
        assert access_decoded["sub"] == "1"
        assert access_decoded["role"] == "CHECKER"
        assert refresh_decoded["type"] == "refresh"

    @patch('pharmacy_portal.services.security_service.settings')
    def test_verify_token_valid_access(self, mock_settings):
        mock_settings.SECRET_KEY = "test_secret_key"
        mock_settings.ALGORITHM = "HS256"

        data = {"sub": "1", "type": "access", "exp": datetime.now(timezone.utc) + timedelta(minutes=30)}
        token = jwt.encode(data, "test_secret_key", algorithm="HS256")

        result = SecurityService.verify_token(token, "access")

        assert result is not None
        assert result["sub"] == "1"

    @patch('pharmacy_portal.services.security_service.settings')
    def test_verify_token_expired(self, mock_settings):
        mock_settings.SECRET_KEY = "test_secret_key"
        mock_settings.ALGORITHM = "HS256"

        data = {"sub": "1", "type": "access", "exp": datetime.now(timezone.utc) - timedelta(minutes=30)}
        token = jwt.encode(data, "test_secret_key", algorithm="HS256")

        assert SecurityService.verify_token(token, "access") is None

    @patch('pharmacy_portal.services.security_service.settings')
    def test_verify_token_wrong_type(self, mock_settings):
        mock_settings.SECRET_KEY = "test_secret_key"
        mock_settings.ALGORITHM = "HS256"

        data = {"sub": "1", "type": "refresh", "exp": datetime.now(timezone.utc) + timedelta(days=7)}
        token = jwt.encode(data, "test_secret_key", algorithm="HS256")

        assert SecurityService.verify_token(token, "access") is None

    @pytest.mark.asyncio
    async def test_refresh_tokens_success(self):
        valid_payload = {"sub": "1", "type": "refresh"}
        new_tokens = {"access_token": "new_access", "refresh_token": "new_refresh", "token_type": "bearer"}

        with patch.object(SecurityService, 'verify_token', return_value=valid_payload), \
             patch.object(SecurityService, 'get_user_by_id', return_value=self.test_user), \
             patch.object(SecurityService, 'create_tokens', return_value=new_tokens):
            result = await SecurityService.refresh_tokens(self.mock_db, "valid_refresh_token")

        assert result == new_tokens

    @pytest.mark.asyncio
    async def test_refresh_tokens_inactive_user(self):
        self.test_user.is_active = False

        with patch.object(SecurityService, 'verify_token', return_value={"sub": "1", "type": "refresh"}), \
             patch.object(SecurityService, 'get_user_by_id', return_value=self.test_user):
            result = await SecurityService.refresh_tokens(self.mock_db, "valid_refresh_token")

        assert result is None

    @pytest.mark.asyncio
    async def test_refresh_tokens_invalid_token(self):
        with patch.object(SecurityService, 'verify_token', return_value=None):
            result = await SecurityService.refresh_tokens(self.mock_db, "invalid_refresh_token")
            assert result is None
