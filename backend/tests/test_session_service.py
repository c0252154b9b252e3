from taskmanager.core.config import settings
from taskmanager.core.security import create_access_token
from taskmanager.models.user import User
from taskmanager.services.session_service import session_service


def test_issued_tokens_all_resolve_to_user(db, user_one):
    user = db.get(User, user_one["id"])
    issued = [session_service.issue(db, user) for _ in range(3)]

    assert len(set(issued)) == 3
    assert user.tokens[-3:] == issued
    for token in issued:
        resolved_user, resolved_token = session_service.resolve(db, token)
        assert resolved_user.id == user_one["id"]
        assert resolved_token == token


def test_revoke_only_affects_that_token(db, user_one):
    user = db.get(User, user_one["id"])
    first = session_service.issue(db, user)
    second = session_service.issue(db, user)

    session_service.revoke(db, user, first)

    assert session_service.resolve(db, first) is None
    assert session_service.resolve(db, second) is not None
    assert session_service.resolve(db, user_one["token"]) is not None


def test_revoke_absent_token_is_a_no_op(db, user_one):
    user = db.get(User, user_one["id"])
    session_service.revoke(db, user, "not-a-live-token")
    assert user.tokens == [user_one["token"]]


def test_revoke_all(db, user_one):
    user = db.get(User, user_one["id"])
    issued = [session_service.issue(db, user) for _ in range(2)]

    session_service.revoke_all(db, user)

    assert user.tokens == []
    for token in issued + [user_one["token"]]:
        assert session_service.resolve(db, token) is None


def test_resolve_rejects_forged_and_orphaned_tokens(db, user_one):
    assert session_service.resolve(db, "garbage") is None
    # Validly signed but never stored on the user
    assert session_service.resolve(db, create_access_token({"sub": str(user_one["id"])})) is None
    # Validly signed for a user that does not exist
    assert session_service.resolve(db, create_access_token({"sub": "9999"})) is None
    assert session_service.resolve(db, create_access_token({"sub": "abc"})) is None


def test_session_cap_evicts_oldest(db, user_one, monkeypatch):
    monkeypatch.setattr(settings, "MAX_SESSIONS_PER_USER", 2)
    user = db.get(User, user_one["id"])

    second = session_service.issue(db, user)
    third = session_service.issue(db, user)

    assert user.tokens == [second, third]
    assert session_service.resolve(db, user_one["token"]) is None
