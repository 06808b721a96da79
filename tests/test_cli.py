"""Tests for the admin CLI in main.py.

Each test points the CLI at a throwaway SQLite file via a patched
get_settings(); the CLI opens and closes its own UserStore per invocation,
so the tests reopen the file to check the result.
"""

import pytest

import main as cli
from auth.models import UserStatus
from auth.passwords import verify_password
from auth.store import UserStore
from core.config import Settings


@pytest.fixture
def db_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    settings = Settings(_env_file=None, debug=True, database_url=url)
    monkeypatch.setattr(cli, "get_settings", lambda: settings)
    return url


def _reopen(url):
    return UserStore(url)


class TestSeedRoles:
    def test_seed_roles(self, db_url, capsys):
        assert cli.main(["seed-roles"]) == 0
        out = capsys.readouterr().out
        assert "role Admin" in out
        assert "role User" in out

        store = _reopen(db_url)
        try:
            assert store.find_role_by_name("Admin") is not None
        finally:
            store.close()


class TestCreateAdmin:
    def test_creates_active_verified_admin(self, db_url, monkeypatch, capsys):
        monkeypatch.setenv("ADMIN_PASSWORD", "admin-password-1")

        rc = cli.main(["create-admin", "--username", "root", "--email", "root@example.test"])

        assert rc == 0
        assert "Created admin root" in capsys.readouterr().out
        store = _reopen(db_url)
        try:
            user = store.find_by_username_for_auth("root")
            assert user.status == UserStatus.ACTIVE
            assert user.email_verified_at is not None
            assert user.role.name == "Admin"
            assert user.name == "root"
            assert verify_password("admin-password-1", user.password_hash)
        finally:
            store.close()

    def test_duplicate_admin(self, db_url, monkeypatch, capsys):
        monkeypatch.setenv("ADMIN_PASSWORD", "admin-password-1")
        args = ["create-admin", "--username", "root", "--email", "root@example.test"]
        assert cli.main(args) == 0
        assert cli.main(args) == 1
        assert "already exists" in capsys.readouterr().out

    def test_short_password_rejected(self, db_url, monkeypatch, capsys):
        monkeypatch.setenv("ADMIN_PASSWORD", "short")
        assert cli.main(["create-admin", "--username", "root", "--email", "root@example.test"]) == 1
        assert "at least 8 characters" in capsys.readouterr().out

    def test_multibyte_password_over_bcrypt_limit(self, db_url, monkeypatch, capsys):
        monkeypatch.setenv("ADMIN_PASSWORD", "\u00e9" * 40)
        assert cli.main(["create-admin", "--username", "root", "--email", "root@example.test"]) == 1
        assert "at most 72 bytes" in capsys.readouterr().out
        store = _reopen(db_url)
        try:
            assert store.find_by_username_for_auth("root") is None
        finally:
            store.close()

    def test_padded_password_is_not_stripped(self, db_url, monkeypatch):
        monkeypatch.setenv("ADMIN_PASSWORD", "  admin pass  ")
        assert cli.main(["create-admin", "--username", "root", "--email", "root@example.test"]) == 0
        store = _reopen(db_url)
        try:
            stored = store.find_by_username_for_auth("root").password_hash
            assert verify_password("  admin pass  ", stored)
            assert not verify_password("admin pass", stored)
        finally:
            store.close()

    def test_prompts_when_env_unset(self, db_url, monkeypatch):
        monkeypatch.delenv("ADMIN_PASSWORD", raising=False)
        monkeypatch.setattr(cli.getpass, "getpass", lambda prompt: "prompted-password")
        assert cli.main(["create-admin", "--username", "root", "--email", "root@example.test"]) == 0


class TestInvalidate:
    @pytest.fixture
    def admin_id(self, db_url, monkeypatch):
        monkeypatch.setenv("ADMIN_PASSWORD", "admin-password-1")
        cli.main(["create-admin", "--username", "root", "--email", "root@example.test"])
        store = _reopen(db_url)
        try:
            return store.find_by_username_for_auth("root").id
        finally:
            store.close()

    def test_invalidate_sessions(self, db_url, admin_id, capsys):
        assert cli.main(["invalidate-sessions", admin_id]) == 0
        assert "All sessions invalidated" in capsys.readouterr().out
        store = _reopen(db_url)
        try:
            user = store.find_by_id(admin_id)
            assert (user.user_version, user.refresh_token_version) == (1, 1)
        finally:
            store.close()

    def test_invalidate_access(self, db_url, admin_id):
        assert cli.main(["invalidate-access", admin_id]) == 0
        store = _reopen(db_url)
        try:
            user = store.find_by_id(admin_id)
            assert (user.user_version, user.refresh_token_version) == (1, 0)
        finally:
            store.close()

    def test_unknown_user(self, db_url, capsys):
        assert cli.main(["invalidate-sessions", "missing"]) == 1
        assert "User not found" in capsys.readouterr().out
