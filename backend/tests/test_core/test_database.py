"""
Unit tests for Supabase client factories and the psycopg2 retry connection

Author: Arpozan
"""
from unittest.mock import MagicMock, patch

import psycopg2
import pytest

from arpozan.backends.live import SupabaseBackend
from arpozan.core import database
from arpozan.core.errors import BackendError


@pytest.fixture(autouse=True)
def fresh_clients():
    database.reset_clients()
    yield
    database.reset_clients()


class TestSupabaseClients:

    @patch('arpozan.core.database.create_client')
    def test_service_client_is_none_without_key(self, mock_create, monkeypatch):
        monkeypatch.setattr(database.settings, "SUPABASE_SERVICE_ROLE_KEY", None)

        assert database.get_service_client() is None
        mock_create.assert_not_called()

    @patch('arpozan.core.database.create_client')
    def test_anon_client_is_cached(self, mock_create, monkeypatch):
        monkeypatch.setattr(database.settings, "SUPABASE_URL", "https://project.supabase.co")
        monkeypatch.setattr(database.settings, "SUPABASE_ANON_KEY", "sb_publishable_abc")

        first = database.get_anon_client()
        second = database.get_anon_client()

        assert first is second
        mock_create.assert_called_once()
        assert mock_create.call_args.args[:2] == ("https://project.supabase.co", "sb_publishable_abc")

    @patch('arpozan.core.database.create_client')
    def test_backend_from_settings_without_database_url(self, mock_create, monkeypatch):
        monkeypatch.setattr(database.settings, "SUPABASE_URL", "https://project.supabase.co")
        monkeypatch.setattr(database.settings, "SUPABASE_ANON_KEY", "sb_publishable_abc")
        monkeypatch.setattr(database.settings, "SUPABASE_SERVICE_ROLE_KEY", "service-key")
        monkeypatch.setattr(database.settings, "DATABASE_URL", None)

        backend = SupabaseBackend.from_settings()

        assert not backend.has_transactions
        assert mock_create.call_count == 2


class TestDirectConnection:

    @patch('arpozan.core.database.time.sleep')
    @patch('arpozan.core.database.psycopg2.connect')
    def test_retries_then_connects(self, mock_connect, mock_sleep, monkeypatch):
        """Dropped SSL sessions are retried with exponential backoff"""
        # Arrange
        monkeypatch.setattr(database.settings, "DATABASE_URL", "postgresql://user:pass@db:5432/postgres")
        conn = MagicMock()
        mock_connect.side_effect = [
            psycopg2.OperationalError("SSL connection has been closed unexpectedly"),
            psycopg2.OperationalError("could not connect"),
            conn,
        ]

        # Act
        result = database.get_db_connection_dict_with_retry(max_retries=3, retry_delay=0.5)

        # Assert
        assert result is conn
        assert [call.args[0] for call in mock_sleep.call_args_list] == [0.5, 1.0]
        assert "statement_timeout" in mock_connect.call_args.kwargs["options"]

    @patch('arpozan.core.database.time.sleep')
    @patch('arpozan.core.database.psycopg2.connect')
    def test_gives_up_with_backend_error(self, mock_connect, mock_sleep, monkeypatch):
        monkeypatch.setattr(database.settings, "DATABASE_URL", "postgresql://db/postgres")
        mock_connect.side_effect = psycopg2.OperationalError("timeout expired")

        with pytest.raises(BackendError):
            database.get_db_connection_dict_with_retry(max_retries=2, retry_delay=0.1)
        assert mock_connect.call_count == 2

    def test_missing_database_url(self, monkeypatch):
        monkeypatch.setattr(database.settings, "DATABASE_URL", None)
        assert not database.has_direct_connection()
        with pytest.raises(BackendError):
            database.get_db_connection_dict_with_retry()
