import logging
import signal
import sys

from .binder import Binder
from .config import load_client, parse_args
from .errors import ConfigError
from .events import EventNotifier
from .fit import FitEngine
from .kube import KubeClient
from .pbs import PBSClient
from .reconciler import Reconciler

logger = logging.getLogger(__name__)


def build_reconciler(api, opts) -> Reconciler:
    kube = KubeClient(api, namespace=opts.namespace)
    notifier = EventNotifier(kube)
    fit_engine = FitEngine(kube, PBSClient(job_script=opts.job_script), notifier)
    binder = Binder(kube, notifier, resolve_ip=opts.hostname_to_ip)
    return Reconciler(kube, fit_engine, binder, interval=opts.interval)


def main(argv=None) -> int:
    opts = parse_args(argv)
    logging.basicConfig(
        level=opts.log_level,
        handlers=[logging.StreamHandler(sys.stdout)],
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logger.info(f"options: {opts}")

    try:
        api = load_client(opts)
    except ConfigError as e:
        logger.error(f"ERROR: {e}")
        return 1

    reconciler = build_reconciler(api, opts)

    def shutdown(signum, frame):
        logger.info("Shutdown signal received, exiting...")
        reconciler.stop()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    logger.info(f"[pbs] scheduler starting… namespace={opts.namespace} interval={opts.interval}s")
    reconciler.start()
    while not reconciler.wait(timeout=1.0):
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
