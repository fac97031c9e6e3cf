# Tests for callback/session.py and callback/resume.py
# Created: 2026-10-19

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest
from starlette.responses import PlainTextResponse, RedirectResponse

from oidc_rp.callback.errors import RESUME_FAILED_BODY, ResponseValidationFailed
from oidc_rp.callback.models import AuthResponse, DecodedToken, Session
from oidc_rp.callback.resume import StarletteResponseSink, resume_user_workflow
from oidc_rp.callback.session import SessionStore, bind_session, web_id_from_claims


def _auth_response(params=None, **claims) -> AuthResponse:
    payload = {"sub": "alice"}
    payload.update(claims)
    return AuthResponse(
        params=params if params is not None else {"access_token": "at", "refresh_token": "rt"},
        decoded=DecodedToken(header={"alg": "RS256"}, payload=payload),
    )


# ---------------------------------------------------------------------------
# web_id_from_claims
# ---------------------------------------------------------------------------


class TestWebIdFromClaims:
    def test_prefers_webid_claim(self):
        claims = {"sub": "alice", "webid": "https://alice.example/card#me"}
        assert web_id_from_claims(claims) == "https://alice.example/card#me"

    def test_falls_back_to_sub(self):
        assert web_id_from_claims({"sub": "alice"}) == "alice"

    def test_no_identity_claims(self):
        with pytest.raises(ValueError):
            web_id_from_claims({"email": "alice@example.com"})


# ---------------------------------------------------------------------------
# bind_session
# ---------------------------------------------------------------------------


class TestBindSession:
    def test_sets_tokens_and_identity(self):
        session = Session(session_id="s1")
        bind_session(session, _auth_response())
        assert session.access_token == "at"
        assert session.refresh_token == "rt"
        assert session.user_id == "alice"
        assert session.identified is True

    def test_missing_refresh_token_writes_nothing(self):
        session = Session(session_id="s1")
        with pytest.raises(ResponseValidationFailed, match="refresh_token"):
            bind_session(session, _auth_response(params={"access_token": "at"}))
        assert session.access_token is None
        assert session.user_id is None
        assert session.identified is False

    def test_identified_written_last(self):
        seen = []

        class Recorder(Session):
            def __setattr__(self, name, value):
                if name == "identified" and value:
                    seen.append((self.access_token, self.user_id))
                super().__setattr__(name, value)

        bind_session(Recorder(session_id="s1"), _auth_response())
        assert seen == [("at", "alice")]

    def test_missing_access_token_writes_nothing(self):
        session = Session(session_id="s1")
        with pytest.raises(ResponseValidationFailed):
            bind_session(session, _auth_response(params={"refresh_token": "rt"}))
        assert session.refresh_token is None
        assert session.identified is False

    def test_mapper_failure_writes_nothing(self):
        session = Session(session_id="s1")
        mapper = MagicMock(side_effect=ValueError("no webid"))
        with pytest.raises(ResponseValidationFailed, match="no webid"):
            bind_session(session, _auth_response(), mapper)
        assert session.access_token is None
        assert session.identified is False


# ---------------------------------------------------------------------------
# resume_user_workflow
# ---------------------------------------------------------------------------


class TestResumeUserWorkflow:
    def test_redirects_and_consumes_return_url(self):
        session = Session(session_id="s1", return_to_url="/dashboard")
        sink = StarletteResponseSink()
        resume_user_workflow(session, sink)

        assert isinstance(sink.response, RedirectResponse)
        assert sink.response.status_code == 302
        assert sink.response.headers["location"] == "/dashboard"
        assert session.return_to_url is None

    def test_second_resume_is_fallback(self):
        session = Session(session_id="s1", return_to_url="/dashboard")
        resume_user_workflow(session, StarletteResponseSink())

        sink = StarletteResponseSink()
        resume_user_workflow(session, sink)
        assert isinstance(sink.response, PlainTextResponse)
        assert sink.response.body == RESUME_FAILED_BODY.encode()

    def test_without_return_url(self):
        sink = MagicMock()
        resume_user_workflow(Session(session_id="s1"), sink)
        sink.send.assert_called_once_with(RESUME_FAILED_BODY)
        sink.redirect.assert_not_called()


# ---------------------------------------------------------------------------
# SessionStore
# ---------------------------------------------------------------------------


class TestSessionStore:
    def test_create_and_get(self):
        store = SessionStore()
        session = store.create()
        assert store.get(session.session_id) is session
        assert len(store) == 1

    def test_unknown_id_gets_new_session(self):
        store = SessionStore()
        session = store.get_or_create("forged-cookie")
        assert session.session_id != "forged-cookie"
        assert store.get(session.session_id) is session

    def test_get_none(self):
        assert SessionStore().get(None) is None

    def test_expired_session_dropped(self):
        store = SessionStore(ttl=timedelta(minutes=5))
        session = store.create()
        store._last_seen[session.session_id] = datetime.now(UTC) - timedelta(minutes=10)
        assert store.get(session.session_id) is None
        assert len(store) == 0

    def test_cleanup_expired(self):
        store = SessionStore(ttl=timedelta(minutes=5))
        old = store.create()
        fresh = store.create()
        store._last_seen[old.session_id] = datetime.now(UTC) - timedelta(minutes=10)
        assert store.cleanup_expired() == 1
        assert store.get(fresh.session_id) is fresh

    def test_delete(self):
        store = SessionStore()
        session = store.create()
        assert store.delete(session.session_id) is True
        assert store.delete(session.session_id) is False

    def test_create_sweeps_expired_sessions(self):
        store = SessionStore(ttl=timedelta(minutes=5), sweep_interval=timedelta(minutes=1))
        old = store.create()
        store._last_seen[old.session_id] = datetime.now(UTC) - timedelta(minutes=10)
        store._last_sweep = datetime.now(UTC) - timedelta(minutes=2)

        fresh = store.create()

        assert len(store) == 1
        assert store.get(fresh.session_id) is fresh

    def test_no_sweep_before_interval(self):
        store = SessionStore(ttl=timedelta(minutes=5), sweep_interval=timedelta(minutes=1))
        old = store.create()
        store._last_seen[old.session_id] = datetime.now(UTC) - timedelta(minutes=10)
        store.create()
        assert len(store) == 2

    def test_evicts_least_recently_seen_beyond_max(self):
        store = SessionStore(max_sessions=2)
        first = store.create()
        second = store.create()
        store.get(first.session_id)

        third = store.create()

        assert len(store) == 2
        assert store.get(second.session_id) is None
        assert store.get(first.session_id) is first
        assert store.get(third.session_id) is third
