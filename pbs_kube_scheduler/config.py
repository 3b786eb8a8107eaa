import argparse
import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

from kubernetes import client, config

from .errors import ConfigError
from .pbs import DEFAULT_JOB_SCRIPT
from .reconciler import DEFAULT_INTERVAL

DEFAULT_APISERVER = "https://10.0.0.1:443"


@dataclass
class Options:
    apiserver: str = DEFAULT_APISERVER
    cert: str = ""
    key: str = ""
    cacert: str = ""
    kubeconfig: Optional[str] = None
    in_cluster: bool = False
    hostname_to_ip: bool = False
    namespace: str = "default"
    interval: float = DEFAULT_INTERVAL
    job_script: str = DEFAULT_JOB_SCRIPT
    log_level: str = "INFO"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pbs-kube-scheduler",
        description="Bind unscheduled pods to the nodes PBS allocates for them.",
    )
    parser.add_argument("--apiserver", default=DEFAULT_APISERVER, help="Kubernetes apiserver address.")
    parser.add_argument("--cert", default="", help="client certificate file")
    parser.add_argument("--key", default="", help="client key file")
    parser.add_argument("--cacert", default="", help="CA certificate file")
    parser.add_argument("--kubeconfig", default=None, help="use this kubeconfig instead of --apiserver")
    parser.add_argument("--in-cluster", action="store_true", help="use the pod's service account")
    parser.add_argument("--hostname-to-ip", action="store_true",
                        help="need to convert the PBS hostname to the node ip")
    parser.add_argument("--namespace", default="default")
    parser.add_argument("--interval", type=float, default=DEFAULT_INTERVAL,
                        help="seconds between sweeps of unscheduled pods")
    parser.add_argument("--job-script", default=DEFAULT_JOB_SCRIPT, help="script submitted with qsub")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def parse_args(argv=None) -> Options:
    args = build_parser().parse_args(argv)
    return Options(**vars(args))


def validate(opts: Options):
    if opts.interval <= 0:
        raise ConfigError(f"interval must be positive, got {opts.interval}")
    if opts.kubeconfig or opts.in_cluster:
        return
    if not opts.apiserver:
        raise ConfigError("no apiserver address")
    url = urlsplit(opts.apiserver)
    if url.scheme not in ("http", "https") or not url.hostname:
        raise ConfigError(f"parse apiserver address {opts.apiserver!r} error")
    if url.scheme == "http":
        return
    for flag, path in (("--cacert", opts.cacert), ("--cert", opts.cert), ("--key", opts.key)):
        if not path or not os.access(path, os.R_OK):
            raise ConfigError(f"{flag} file {path!r} is not readable")


def load_client(opts: Options) -> client.CoreV1Api:
    validate(opts)
    try:
        if opts.kubeconfig:
            config.load_kube_config(opts.kubeconfig)
            return client.CoreV1Api()
        if opts.in_cluster:
            config.load_incluster_config()
            return client.CoreV1Api()
    except config.ConfigException as e:
        raise ConfigError(f"load kubernetes config error: {e}") from e

    configuration = client.Configuration()
    configuration.host = opts.apiserver.rstrip("/")
    if urlsplit(opts.apiserver).scheme == "https":
        configuration.cert_file = opts.cert
        configuration.key_file = opts.key
        configuration.ssl_ca_cert = opts.cacert
    return client.CoreV1Api(client.ApiClient(configuration))
