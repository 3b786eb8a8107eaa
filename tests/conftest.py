from unittest import mock

import pytest
from kubernetes import client

from pbs_kube_scheduler.models import JobStatus


def make_pod(name="pod-a", cpu=("1000m",), memory=("512Mi",), annotations=None,
             node_name=None, uid=None):
    containers = []
    for i, (c, m) in enumerate(zip(cpu, memory)):
        requests = {}
        if c is not None:
            requests["cpu"] = c
        if m is not None:
            requests["memory"] = m
        containers.append(client.V1Container(
            name=f"c{i}", image="busybox",
            resources=client.V1ResourceRequirements(requests=requests),
        ))
    return client.V1Pod(
        metadata=client.V1ObjectMeta(name=name, namespace="default", uid=uid or f"uid-{name}",
                                     annotations=annotations),
        spec=client.V1PodSpec(containers=containers, node_name=node_name),
    )


def running(job_id="1.pbs", host="node07/0"):
    return JobStatus(job_id=job_id, job_state="R", substate="42", exec_host=host)


def queued(job_id="1.pbs", comment="Not Running: Insufficient amount of resource: ncpus"):
    return JobStatus(job_id=job_id, job_state="Q", substate="10", comment=comment)


class FakeKube:
    """In-memory stand-in for KubeClient."""

    namespace = "default"

    def __init__(self, pods=()):
        self.pods = {p.metadata.name: p for p in pods}
        self.annotations = []
        self.bindings = []
        self.events = []
        self.fail_annotate = None
        self.fail_bind = None
        self.fail_event = None

    def list_unscheduled_pods(self):
        return [p for p in self.pods.values() if not p.spec.node_name]

    def read_pod(self, name):
        return self.pods.get(name)

    def watch_unscheduled_pods(self, stop_event):
        stop_event.wait()
        return iter(())

    def annotate_job_id(self, pod, job_id):
        if self.fail_annotate:
            raise self.fail_annotate
        self.annotations.append((pod.metadata.name, job_id))
        stored = self.pods.get(pod.metadata.name)
        if stored is not None:
            stored.metadata.annotations = dict(stored.metadata.annotations or {}, JobID=job_id)

    def bind_pod(self, pod, node_name):
        if self.fail_bind:
            raise self.fail_bind
        self.bindings.append((pod.metadata.name, node_name))
        stored = self.pods.get(pod.metadata.name)
        if stored is not None:
            stored.spec.node_name = node_name

    def post_event(self, body):
        if self.fail_event:
            raise self.fail_event
        self.events.append(body)


class FakePBS:
    def __init__(self, statuses=None):
        self.submitted = []
        self.statuses = statuses or {}
        self.next_id = 1

    def submit(self, name, resources):
        job_id = f"{self.next_id}.pbs"
        self.next_id += 1
        self.submitted.append((name, resources))
        self.statuses.setdefault(job_id, queued(job_id))
        return job_id

    def status(self, job_id):
        return self.statuses[job_id]


@pytest.fixture
def kube():
    return FakeKube()


@pytest.fixture
def pbs():
    return FakePBS()


@pytest.fixture
def notifier():
    return mock.Mock()
