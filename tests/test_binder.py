from unittest import mock

import pytest

from pbs_kube_scheduler.binder import Binder, hostname_to_ip
from pbs_kube_scheduler.errors import BindError, KubeError
from pbs_kube_scheduler.events import EventNotifier

from .conftest import make_pod


def test_bind_uses_host_name_and_reports_success(kube, notifier):
    pod = make_pod()
    Binder(kube, notifier).bind(pod, "node07")
    assert kube.bindings == [("pod-a", "node07")]
    notifier.scheduled.assert_called_once_with(pod, "Successfully assigned pod-a to node07")


def test_bind_resolves_host_to_ip(kube, notifier):
    resolver = mock.Mock(return_value="10.1.2.7")
    Binder(kube, notifier, resolve_ip=True, resolver=resolver).bind(make_pod(), "node07")
    resolver.assert_called_once_with("node07")
    assert kube.bindings == [("pod-a", "10.1.2.7")]


def test_resolution_failure_aborts_bind(kube, notifier):
    resolver = mock.Mock(side_effect=OSError("Name or service not known"))
    binder = Binder(kube, notifier, resolve_ip=True, resolver=resolver)
    with pytest.raises(BindError, match="node07"):
        binder.bind(make_pod(), "node07")
    assert kube.bindings == []
    notifier.scheduled.assert_not_called()


def test_hostname_to_ip_rejects_empty_answer():
    with pytest.raises(BindError):
        hostname_to_ip("node07", resolver=lambda host: "")


def test_rejected_binding_is_an_error(kube, notifier):
    kube.fail_bind = KubeError("conflict", status=409)
    with pytest.raises(BindError):
        Binder(kube, notifier).bind(make_pod(), "node07")
    notifier.scheduled.assert_not_called()


def test_event_failure_does_not_undo_bind(kube):
    kube.fail_event = KubeError("events forbidden", status=403)
    pod = make_pod()
    Binder(kube, EventNotifier(kube)).bind(pod, "node07")
    assert kube.bindings == [("pod-a", "node07")]
    assert pod.spec.node_name == "node07"
