from pbs_kube_scheduler.events import EventNotifier, build_event, rfc3339_now
from pbs_kube_scheduler.errors import KubeError

from .conftest import make_pod


def test_build_event_body():
    body = build_event(make_pod(uid="u-1"), "Scheduled", "Normal", "ok", "default",
                       timestamp="2026-10-19T08:00:00Z")
    assert body["metadata"] == {"generateName": "pod-a-", "namespace": "default"}
    assert body["involvedObject"] == {"kind": "Pod", "name": "pod-a", "namespace": "default", "uid": "u-1"}
    assert body["source"] == {"component": "PBS-scheduler"}
    assert body["count"] == 1
    assert body["firstTimestamp"] == body["lastTimestamp"] == "2026-10-19T08:00:00Z"


def test_timestamp_is_rfc3339_utc():
    stamp = rfc3339_now()
    assert len(stamp) == 20 and stamp.endswith("Z") and stamp[10] == "T"


def test_notifier_posts_warning(kube):
    notifier = EventNotifier(kube, clock=lambda: "2026-10-19T08:00:00Z")
    assert notifier.failed_scheduling(make_pod(), "no fit")
    event = kube.events[0]
    assert (event["type"], event["reason"], event["message"]) == ("Warning", "FailedScheduling", "no fit")


def test_notifier_reports_post_failure(kube):
    kube.fail_event = KubeError("down")
    assert EventNotifier(kube).scheduled(make_pod(), "ok") is False
    assert kube.events == []
