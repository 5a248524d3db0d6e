from studiobook.events.audit import AuditEvent, AuditHooks
from studiobook.monitoring.prometheus_metrics import REGISTRY, prometheus_metrics


def _event():
    return AuditEvent(actor=None, entity_type="booking", entity_id="b1", action="create")


def _audit_count(status):
    value = REGISTRY.get_sample_value(
        "studiobook_audit_events_total",
        {"entity_type": "booking", "action": "create", "status": status},
    )
    return value or 0.0


def test_hooks_run_in_registration_order():
    calls = []
    hooks = AuditHooks([lambda e: calls.append("first")])
    hooks.register(lambda e: calls.append("second"))

    hooks.dispatch(_event())

    assert calls == ["first", "second"]
    assert len(hooks) == 2


def test_failing_hook_is_isolated_and_counted():
    calls = []

    def _broken(event):
        raise ValueError("nope")

    hooks = AuditHooks([_broken, calls.append])
    errors_before = _audit_count("error")

    hooks.dispatch(_event())

    assert len(calls) == 1
    assert _audit_count("error") == errors_before + 1


def test_unregister():
    calls = []
    hook = calls.append
    hooks = AuditHooks([hook])
    hooks.unregister(hook)

    hooks.dispatch(_event())

    assert calls == []
    assert hooks.hooks() == ()


def test_event_serializes_timestamp():
    payload = _event().to_dict()

    assert payload["entity_type"] == "booking"
    assert isinstance(payload["occurred_at"], str)


def test_metrics_exposition_includes_pool_metrics():
    prometheus_metrics.record_transaction("create_booking", "committed")

    body = prometheus_metrics.get_metrics().decode()

    assert "studiobook_db_pool_acquire_seconds" in body
    assert 'studiobook_db_transactions_total{operation="create_booking",outcome="committed"}' in body
