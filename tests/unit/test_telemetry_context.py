import asyncio

import pytest

from wechat_pub.auth.token_cache import TokenCache
from wechat_pub.core.types import Success
from wechat_pub.pipeline.registries import UploadCache
from wechat_pub.pipeline.scheduler import UploadScheduler
from wechat_pub.telemetry import SimpleReporter, TelemetryContext, telemetry_enabled
from wechat_pub.transport.base import IssuedCredential


class _Issuer:
    async def issue_credential(self, app_id, app_secret):  # noqa: ARG002
        return Success(IssuedCredential(value="tok", lifetime_seconds=7200))


class _Transport:
    async def call(self, endpoint, credential, payload=None, *, method="POST", params=None):  # noqa: ARG002
        await asyncio.sleep(0)
        return Success({"url": f"https://cdn.example/{payload.filename}"})


class _BrokenReporter:
    def record_timing(self, scope, duration, **metadata):
        raise RuntimeError("boom")

    def record_metric(self, scope, value, **metadata):
        raise RuntimeError("boom")


@pytest.mark.unit
def test_disabled_by_default_returns_shared_noop():
    assert not telemetry_enabled()
    ctx = TelemetryContext(SimpleReporter())
    assert ctx is TelemetryContext()
    with ctx("anything") as inner:
        inner.count("ignored")


@pytest.mark.unit
def test_enabled_without_reporters_stays_noop(monkeypatch):
    monkeypatch.setenv("WECHAT_PUB_TELEMETRY", "1")
    assert TelemetryContext() is TelemetryContext()


@pytest.mark.unit
@pytest.mark.parametrize("var", ["WECHAT_PUB_TELEMETRY", "DEBUG"])
def test_nested_scopes_join_names(monkeypatch, var):
    monkeypatch.setenv(var, "1")
    reporter = SimpleReporter()
    ctx = TelemetryContext(reporter)

    with ctx("outer"):
        with ctx("inner", kind="x"):
            ctx.count("hits", 2)
        ctx.metric("level", 0.5)

    assert set(reporter.timings) == {"outer", "outer.inner"}
    _, metadata = reporter.timings["outer.inner"][0]
    assert metadata["parent_scope"] == "outer"
    assert metadata["kind"] == "x"
    assert reporter.timings["outer"][0][1]["parent_scope"] is None
    assert reporter.total("outer.inner.hits") == 2
    assert reporter.metrics["outer.level"][0][0] == 0.5
    assert reporter.metrics["outer.inner.hits"][0][1]["metric_type"] == "counter"
    assert "outer.inner" in reporter.get_report()


@pytest.mark.unit
def test_empty_scope_name_is_rejected(monkeypatch):
    monkeypatch.setenv("WECHAT_PUB_TELEMETRY", "1")
    ctx = TelemetryContext(SimpleReporter())
    with pytest.raises(ValueError, match="non-empty"), ctx(""):
        pass


@pytest.mark.unit
def test_failing_reporter_does_not_break_caller(monkeypatch, caplog):
    monkeypatch.setenv("WECHAT_PUB_TELEMETRY", "1")
    good = SimpleReporter()
    ctx = TelemetryContext(_BrokenReporter(), good)

    with ctx("work"):
        ctx.count("items")

    assert "work" in good.timings
    assert good.total("work.items") == 1
    assert "_BrokenReporter" in caplog.text


@pytest.mark.unit
@pytest.mark.asyncio
async def test_upload_pipeline_reports_scopes_and_counters(monkeypatch):
    monkeypatch.setenv("WECHAT_PUB_TELEMETRY", "1")
    reporter = SimpleReporter()
    telemetry = TelemetryContext(reporter)
    cache = UploadCache()
    tokens = TokenCache(_Issuer(), "wxapp", "secret", telemetry=telemetry)
    scheduler = UploadScheduler(_Transport(), tokens, cache, telemetry=telemetry)

    await scheduler.upload_all([("a.png", b"a"), ("b.png", b"b")])
    await scheduler.upload_all([("a.png", b"a")])

    scopes = set(reporter.timings)
    assert "uploads.partition" in scopes
    assert "uploads.upload" in scopes
    assert "uploads.upload.uploads.attempt" in scopes
    assert len(reporter.timings["uploads.upload.uploads.attempt"]) == 2
    assert any(s.endswith("auth.refresh") for s in scopes)
    assert reporter.total("uploads.partition.uploads.cache_hit") == 1
