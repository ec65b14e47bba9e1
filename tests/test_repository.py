import pytest

from fitmanager.errors import AuthenticationError, TransportError, ValidationError
from fitmanager.models import MacroEntry, MetricEntry, Snapshot


class TestMetricRepository:
    def test_list_keeps_server_order(self, logged_in, server):
        server.seed("/weights", weight=80, date="2025-03-02T08:00:00.000Z")
        server.seed("/weights", weight=81, date="2025-03-01T08:00:00.000Z")
        entries = logged_in.weights.list()
        assert [e.value for e in entries] == [80.0, 81.0]
        assert all(isinstance(e, MetricEntry) for e in entries)

    def test_create_then_list_includes_entry(self, logged_in, server):
        snapshot = logged_in.weights.create({"weight": "72.5", "date": "2025-03-01T08:00:00Z"})
        assert isinstance(snapshot, Snapshot)
        assert [e.value for e in snapshot.entries] == [72.5]
        assert [e.value for e in logged_in.weights.list()] == [72.5]
        # mutation was followed by a re-read
        assert server.calls[-2]["method"] == "GET"

    def test_create_serializes_payload(self, logged_in, server):
        logged_in.hydrations.create({"amount": 100})
        body = server.calls_to("POST", "/hydrations")[0]["json"]
        assert body["amount"] == 100.0
        assert body["date"].endswith("Z")

    def test_delete_by_id_then_list_excludes_entry(self, logged_in, server):
        kept = server.seed("/hydrations", amount=100, date="2025-03-01T08:00:00.000Z")
        gone = server.seed("/hydrations", amount=200, date="2025-03-01T09:00:00.000Z")
        snapshot = logged_in.hydrations.delete_by_id(gone["_id"])
        assert [e.id for e in snapshot.entries] == [kept["_id"]]
        assert [e.id for e in logged_in.hydrations.list()] == [kept["_id"]]

    def test_missing_scalar_is_rejected_before_sending(self, logged_in, server):
        with pytest.raises(ValidationError):
            logged_in.weights.create({"weight": "abc"})
        with pytest.raises(ValidationError):
            logged_in.weights.create({})
        assert server.calls_to("POST", "/weights") == []

    def test_server_rejection_is_validation_error(self, logged_in):
        with pytest.raises(ValidationError):
            logged_in.weights.create({"weight": -3})

    def test_generic_failure_is_transport_error(self, logged_in, server):
        server.fail[("POST", "/weights")] = 503
        with pytest.raises(TransportError) as excinfo:
            logged_in.weights.create({"weight": 70})
        assert not isinstance(excinfo.value, ValidationError)

    def test_macros_default_to_zero(self, logged_in, server):
        snapshot = logged_in.macros.create({"protein": "30", "carbs": ""})
        body = server.calls_to("POST", "/macros")[0]["json"]
        assert (body["protein"], body["carbs"], body["fats"]) == (30.0, 0.0, 0.0)
        assert isinstance(snapshot.entries[0], MacroEntry)

    def test_delete_most_recent_uses_store_order(self, logged_in, server):
        server.seed("/hydrations", amount=100, date="2025-03-01T12:00:00.000Z")
        older = server.seed("/hydrations", amount=100, date="2025-03-01T08:00:00.000Z")
        snapshot = logged_in.hydrations.delete_most_recent()
        assert [e.id for e in snapshot.entries] == [older["_id"]]
        assert server.calls_to("GET", "/hydrations")[0]["params"] == {"last": "true"}

    def test_delete_most_recent_without_entries_is_noop(self, logged_in, server):
        snapshot = logged_in.hydrations.delete_most_recent()
        assert snapshot.entries == []
        assert [c for c in server.calls if c["method"] == "DELETE"] == []

    def test_list_without_session_forces_login(self, ctx, redirects):
        with pytest.raises(AuthenticationError):
            ctx.weights.list()
        assert redirects == ["login"]


class TestProfileAndAuth:
    def test_login_stores_token(self, ctx, server):
        token = ctx.auth.login("u", "p")
        assert ctx.session.current_token() == token
        assert token in server.tokens

    def test_register_starts_session(self, ctx):
        ctx.auth.register("new", "new@example.com", "secret")
        assert ctx.session.is_authenticated

    def test_failed_login_leaves_session_empty(self, ctx):
        with pytest.raises(AuthenticationError):
            ctx.auth.login("u", "nope")
        assert not ctx.session.is_authenticated

    def test_fetch_profile(self, logged_in):
        profile = logged_in.profiles.fetch()
        assert profile.username == "u"
        assert profile.date_of_birth == "1990-05-04"
        assert profile.target_weight == 75.0

    def test_verify(self, logged_in):
        assert logged_in.auth.verify("u", "p") is True
        assert logged_in.auth.verify("u", "bad") is False
