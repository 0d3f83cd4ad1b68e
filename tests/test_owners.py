"""
Tests for owner signup, login checks and approval status.
"""

import pytest

from owner_platform.auth import crud
from owner_platform.auth.crud import (
    authenticate_owner,
    delete_owner,
    derive_username,
    get_owner_by_email,
    register_owner,
    set_owner_status,
    update_owner_profile,
)
from owner_platform.errors import (
    BlobStoreUnavailable,
    EmailTaken,
    InvalidCredentials,
    NotApproved,
    NotFound,
    UpstreamFailure,
    UsernameTaken,
    ValidationFailed,
)
from owner_platform.media.blobs import ImageUpload

from conftest import PASSWORD, FailingBlobStore, create_owner


def _signup(conn, **overrides):
    values = dict(
        name="Ada",
        email="ada@example.com",
        password=PASSWORD,
        owner_type="bookstore",
    )
    values.update(overrides)
    return register_owner(conn, **values)


class TestDeriveUsername:

    def test_sanitizes_local_part_and_suffixes_timestamp(self):
        assert derive_username("Jane.Doe+books@example.com", now_ms=1700) == "janedoebooks-1700"

    def test_keeps_underscore_and_hyphen(self):
        assert derive_username("a_b-c@example.com", now_ms=5) == "a_b-c-5"

    def test_falls_back_when_nothing_survives(self):
        assert derive_username("...@example.com", now_ms=42) == "user42-42"


class TestRegister:

    def test_new_owner_is_pending(self, db):
        with db() as conn:
            owner = _signup(conn)

        assert owner["status"] == "pending"
        assert owner["email"] == "ada@example.com"
        assert owner["owner_type"] == "bookstore"
        assert "password_hash" not in owner

    def test_username_derived_when_absent(self, db):
        with db() as conn:
            owner = _signup(conn, email="Book.Shop@example.com", username="  ")

        assert owner["username"].startswith("bookshop-")

    def test_supplied_username_kept(self, db):
        with db() as conn:
            owner = _signup(conn, username="adas_books")

        assert owner["username"] == "adas_books"

    def test_email_is_normalized_and_unique(self, db):
        with db() as conn:
            _signup(conn)
        with db() as conn:
            with pytest.raises(EmailTaken):
                _signup(conn, email="  ADA@example.com ")

    def test_username_unique(self, db):
        with db() as conn:
            _signup(conn, username="shared")
        with db() as conn:
            with pytest.raises(UsernameTaken):
                _signup(conn, email="other@example.com", username="shared")

    @pytest.mark.parametrize(
        "field,value",
        [("name", ""), ("email", None), ("email", "no-at-sign"), ("password", ""), ("owner_type", "publisher")],
    )
    def test_validation(self, db, field, value):
        with db() as conn:
            with pytest.raises(ValidationFailed):
                _signup(conn, **{field: value})

    def test_racing_signups_same_email(self, db, monkeypatch):
        # Both requests pass the pre-check; the database constraint decides.
        monkeypatch.setattr(crud, "get_owner_by_email", lambda conn, email: None)

        with db() as conn:
            _signup(conn)
        with db() as conn:
            with pytest.raises(EmailTaken):
                _signup(conn, name="Ada Again", username="ada_again")

        with db() as conn:
            n = conn.execute("SELECT COUNT(*) AS n FROM owners").fetchone()["n"]
        assert n == 1

    def test_racing_signups_same_username(self, db, monkeypatch):
        monkeypatch.setattr(crud, "get_owner_by_username", lambda conn, username: None)

        with db() as conn:
            _signup(conn, username="dupe")
        with db() as conn:
            with pytest.raises(UsernameTaken):
                _signup(conn, email="second@example.com", username="dupe")

    def test_profile_image_uploaded_before_insert(self, db, blob_store):
        with db() as conn:
            owner = _signup(
                conn,
                profile_image=ImageUpload(data=b"img", filename="me.png"),
                blob_store=blob_store,
            )

        assert blob_store.uploads == [("owner_profiles", "me.png", b"img")]
        assert owner["profile_image"] == "https://blobs.test/owner_profiles/1-me.png"

    def test_profile_image_without_blob_store_is_rejected(self, db):
        with db() as conn:
            with pytest.raises(BlobStoreUnavailable):
                _signup(conn, profile_image=ImageUpload(data=b"img", filename="me.png"), blob_store=None)

        with db() as conn:
            assert get_owner_by_email(conn, "ada@example.com") is None

    def test_failed_upload_creates_nothing(self, db):
        with db() as conn:
            with pytest.raises(UpstreamFailure):
                _signup(
                    conn,
                    profile_image=ImageUpload(data=b"img", filename="me.png"),
                    blob_store=FailingBlobStore(),
                )

        with db() as conn:
            assert get_owner_by_email(conn, "ada@example.com") is None


class TestAuthenticate:

    def test_unknown_email_and_wrong_password_look_the_same(self, db):
        create_owner(db, email="known@example.com")

        with db() as conn:
            with pytest.raises(InvalidCredentials) as missing:
                authenticate_owner(conn, "nobody@example.com", PASSWORD)
            with pytest.raises(InvalidCredentials) as wrong:
                authenticate_owner(conn, "known@example.com", "wrong-password")

        assert missing.value.to_dict() == wrong.value.to_dict()
        assert missing.value.status_code == wrong.value.status_code == 401

    @pytest.mark.parametrize("status", ["pending", "rejected"])
    def test_not_approved(self, db, status):
        create_owner(db, email="waiting@example.com", status=status)

        with db() as conn:
            with pytest.raises(NotApproved):
                authenticate_owner(conn, "waiting@example.com", PASSWORD)

    def test_not_approved_only_after_password_check(self, db):
        create_owner(db, email="waiting@example.com", status="pending")

        with db() as conn:
            with pytest.raises(InvalidCredentials):
                authenticate_owner(conn, "waiting@example.com", "wrong-password")

    def test_approved_owner(self, db):
        create_owner(db, email="ok@example.com")

        with db() as conn:
            owner = authenticate_owner(conn, "OK@example.com", PASSWORD)

        assert owner["email"] == "ok@example.com"
        assert "password_hash" not in owner


class TestStatusAndProfile:

    def test_rejection_reason_only_kept_for_rejected(self, db):
        owner = create_owner(db, email="r@example.com", status="pending")

        with db() as conn:
            rejected = set_owner_status(conn, owner["owner_id"], "rejected", rejection_reason="No ID")
            assert rejected["rejection_reason"] == "No ID"
            approved = set_owner_status(conn, owner["owner_id"], "approved", rejection_reason="ignored")
            assert approved["rejection_reason"] is None

    def test_invalid_status(self, db):
        owner = create_owner(db, email="r@example.com", status="pending")
        with db() as conn:
            with pytest.raises(ValidationFailed):
                set_owner_status(conn, owner["owner_id"], "banned")

    def test_unknown_owner_status(self, db):
        with db() as conn:
            with pytest.raises(NotFound):
                set_owner_status(conn, "missing", "approved")

    def test_partial_profile_update(self, db, blob_store):
        owner = create_owner(db, email="p@example.com", bio="old bio", store_name="Old Store")

        with db() as conn:
            updated = update_owner_profile(
                conn,
                owner["owner_id"],
                bio="new bio",
                profile_image=ImageUpload(data=b"x", filename="new.png"),
                blob_store=blob_store,
            )

        assert updated["bio"] == "new bio"
        assert updated["store_name"] == "Old Store"
        assert updated["profile_image"].endswith("new.png")

    def test_profile_update_does_not_touch_status(self, db):
        owner = create_owner(db, email="p@example.com", status="pending")
        with db() as conn:
            updated = update_owner_profile(conn, owner["owner_id"], name="Renamed")
        assert updated["status"] == "pending"
        assert updated["name"] == "Renamed"

    def test_delete_owner(self, db):
        owner = create_owner(db, email="gone@example.com")
        with db() as conn:
            assert delete_owner(conn, owner["owner_id"]) is True
            assert delete_owner(conn, owner["owner_id"]) is False
