import json

from formatbench.metrics import MetricsStore, NetworkMetric, TestingState
from formatbench.timing import TimingContext, TimingRecord


def _ok(format_id="png", size=100):
    upload = TimingRecord("upload", start_ns=0, end_ns=2_000_000)
    download = TimingRecord("download", start_ns=2_500_000, end_ns=4_000_000)
    return NetworkMetric.succeeded(format_id, size, upload, download, url="http://x/file/1")


def test_succeeded_metric_timings():
    metric = _ok()

    assert metric.success is True
    assert metric.upload_ms == 2.0
    assert metric.download_ms == 1.5
    assert metric.total_ms == 4.0
    assert metric.error is None


def test_failed_metric_has_no_timings():
    metric = NetworkMetric.failed("bmp", 10, "Upload failed: 500")

    assert metric.success is False
    assert metric.error == "Upload failed: 500"
    assert (metric.upload_ms, metric.download_ms, metric.total_ms, metric.url) == (None, None, None, None)


def test_absent_is_distinct_from_failed():
    store = MetricsStore()
    store.set("bmp", NetworkMetric.failed("bmp", 10, "boom"))

    assert store.get("webp") is None
    assert store.get("bmp").success is False
    assert store.state("webp") is TestingState.NOT_STARTED


def test_reset_clears_every_key():
    store = MetricsStore()
    for format_id in ("original", "jpeg", "png"):
        store.set(format_id, _ok(format_id))
        store.set_state(format_id, TestingState.FINISHED)

    store.reset()

    assert store.keys() == []
    assert store.states() == {}
    for format_id in ("original", "jpeg", "png"):
        assert store.get(format_id) is None
        assert store.state(format_id) is TestingState.NOT_STARTED


def test_reset_increments_epoch():
    store = MetricsStore()
    first = store.reset()
    second = store.reset()

    assert second == first + 1
    assert store.is_current(second)
    assert not store.is_current(first)


def test_stale_writes_are_discarded():
    store = MetricsStore()
    old = store.reset()
    store.reset()

    assert store.set("png", _ok(), epoch=old) is False
    assert store.set_state("png", TestingState.IN_PROGRESS, epoch=old) is False
    assert store.record(TimingRecord("upload", 0, 1), epoch=old) is False
    assert store.get("png") is None
    assert store.get_all_records() == []


def test_current_epoch_writes_are_kept():
    store = MetricsStore()
    epoch = store.reset()

    assert store.set("png", _ok(), epoch=epoch) is True
    assert store.get("png").success is True


def test_set_replaces_whole_metric():
    store = MetricsStore()
    store.set("png", NetworkMetric.failed("png", 1, "boom"))
    store.set("png", _ok())

    assert store.get("png").success is True
    assert store.get("png").error is None


def test_export_json(tmp_path):
    store = MetricsStore()
    store.set("original", _ok("original"))
    store.record(TimingRecord("upload", 0, 1000, {"format": "original"}))

    path = tmp_path / "raw_metrics.json"
    store.export_json(path)

    data = json.loads(path.read_text())
    assert data["metrics"]["original"]["success"] is True
    assert data["records"][0]["name"] == "upload"


def test_export_chrome_trace(tmp_path):
    store = MetricsStore()
    store.record(TimingRecord("upload", 5_000, 15_000, {"format": "png"}))
    store.record(TimingRecord("download", 16_000, 20_000, {"format": "png"}))

    path = tmp_path / "trace.json"
    store.export_chrome_trace(path)

    events = json.loads(path.read_text())["traceEvents"]
    assert [e["name"] for e in events] == ["upload", "download"]
    assert events[0]["ts"] == 0
    assert events[0]["dur"] == 10
    assert events[1]["ts"] == 11
    assert events[1]["args"] == {"format": "png"}


class _TickClock:
    def __init__(self, step_ns):
        self.now = 0
        self.step_ns = step_ns

    def __call__(self):
        self.now += self.step_ns
        return self.now


def test_timing_context_records_duration():
    records = []
    with TimingContext("upload", on_record=records.append, clock=_TickClock(3_000_000), format="png") as timer:
        pass

    assert timer.record.duration_ms == 3.0
    assert records == [timer.record]
    assert timer.record.metadata == {"format": "png"}


def test_timing_context_no_record_on_error():
    records = []
    try:
        with TimingContext("upload", on_record=records.append) as timer:
            raise RuntimeError("network down")
    except RuntimeError:
        pass

    assert timer.record is None
    assert records == []


def test_begin_claims_key_until_finish():
    store = MetricsStore()
    epoch = store.reset()

    assert store.begin("png", epoch) is True
    assert store.state("png") is TestingState.IN_PROGRESS
    assert store.begin("png", epoch, timeout=0) is False
    assert store.begin("jpeg", epoch, timeout=0) is True

    store.finish("png", epoch)

    assert store.state("png") is TestingState.FINISHED
    assert store.in_flight() == {"jpeg"}
    assert store.begin("png", epoch, timeout=0) is True


def test_reset_keeps_in_flight_claims():
    store = MetricsStore()
    old = store.reset()
    store.begin("png", old)
    new = store.reset()

    assert store.begin("png", new, timeout=0) is False

    store.finish("png", old)

    assert store.state("png") is TestingState.NOT_STARTED
    assert store.begin("png", new, timeout=0) is True


def test_begin_refuses_stale_epoch():
    store = MetricsStore()
    old = store.reset()
    store.reset()

    assert store.begin("png", old) is False
    assert store.in_flight() == set()
    assert store.states() == {}


def test_excluded_time_left_out_of_total():
    upload = TimingRecord("upload", start_ns=0, end_ns=2_000_000)
    download = TimingRecord("download", start_ns=202_000_000, end_ns=203_000_000)
    metric = NetworkMetric.succeeded("png", 1, upload, download, url="u", excluded_ns=200_000_000)

    assert metric.total_ms == 3.0
