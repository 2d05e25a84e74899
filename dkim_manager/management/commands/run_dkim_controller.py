"""
Long-running DKIMKey controller.

Watches DKIMKey resources across the cluster and runs one reconcile pass
per change event. Every resync interval all DKIMKeys are listed and
reconciled again, which also retries passes that asked to be requeued.

Usage:
    python manage.py run_dkim_controller
"""
import signal
import time
import logging
from django.core.management.base import BaseCommand
from kubernetes import watch
from kubernetes.client.rest import ApiException

from dkim_manager.conf import get_setting, get_watch_namespace
from dkim_manager.k8s.client import K8sClientError
from dkim_manager.k8s.dkimkey import DKIMKEY_GROUP, DKIMKEY_PLURAL, DKIMKEY_VERSION
from dkim_manager.k8s.store import KubernetesStore
from dkim_manager.reconciler import DKIMKeyReconciler

logger = logging.getLogger(__name__)

ERROR_BACKOFF_SECONDS = 5


class Command(BaseCommand):
    help = 'Run the DKIMKey controller'

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.running = True
        self._watch = None
        self.requeued = set()

    def add_arguments(self, parser):
        parser.add_argument(
            '--namespace',
            default=None,
            help='Only manage DKIMKeys in this namespace (default: DKIM_MANAGER_NAMESPACE)',
        )
        parser.add_argument(
            '--resync-interval',
            type=int,
            default=None,
            help='Seconds between full resyncs (default: DKIM_MANAGER_RESYNC_INTERVAL)',
        )
        parser.add_argument(
            '--field-manager',
            default=None,
            help='Field manager for server-side apply (default: DKIM_MANAGER_FIELD_MANAGER)',
        )

    def handle(self, *args, **options):
        namespace = options['namespace']
        if namespace is None:
            namespace = get_watch_namespace()
        resync_interval = options['resync_interval'] or get_setting('DKIM_MANAGER_RESYNC_INTERVAL')
        field_manager = options['field_manager'] or get_setting('DKIM_MANAGER_FIELD_MANAGER')

        # Setup signal handlers for graceful shutdown
        signal.signal(signal.SIGTERM, self._handle_signal)
        signal.signal(signal.SIGINT, self._handle_signal)

        store = KubernetesStore.from_config()
        reconciler = DKIMKeyReconciler(store, namespace=namespace, field_manager=field_manager)

        scope = f"namespace '{namespace}'" if namespace else "all namespaces"
        self.stdout.write(self.style.SUCCESS(
            f'DKIMKey controller started (managing {scope}, resync every {resync_interval}s)'
        ))

        while self.running:
            self._resync(store, reconciler)
            if self.running and not self._watch_events(store, reconciler, resync_interval):
                time.sleep(ERROR_BACKOFF_SECONDS)

        self.stdout.write(self.style.SUCCESS('DKIMKey controller stopped'))

    def _handle_signal(self, signum, frame):
        """Handle shutdown signals gracefully."""
        self.stdout.write(self.style.WARNING(f'Received signal {signum}, shutting down...'))
        self.running = False
        if self._watch is not None:
            self._watch.stop()

    def _dispatch(self, reconciler, namespace: str, name: str):
        """Run one reconcile pass and remember keys that asked to be retried."""
        key = (namespace, name)
        result = reconciler.reconcile(namespace, name)
        if result.requeue:
            self.requeued.add(key)
        else:
            self.requeued.discard(key)

    def _resync(self, store, reconciler):
        """Reconcile every DKIMKey in the cluster."""
        try:
            dkimkeys = store.list_dkimkeys()
        except K8sClientError as e:
            logger.error(f'Resync failed to list DKIMKeys: {e}')
            return

        seen = set()
        for dkimkey in dkimkeys:
            if not self.running:
                return
            seen.add((dkimkey.namespace, dkimkey.name))
            self._dispatch(reconciler, dkimkey.namespace, dkimkey.name)

        # keys whose objects are gone no longer need a retry
        self.requeued &= seen
        if self.requeued:
            logger.info(f'{len(self.requeued)} DKIMKey(s) still pending retry')

    def _watch_events(self, store, reconciler, timeout_seconds: int) -> bool:
        """
        Dispatch watch events until the watch times out or is stopped.

        Returns:
            False if the watch ended because of an error
        """
        self._watch = watch.Watch()
        try:
            for event in self._watch.stream(
                store.custom_api.list_cluster_custom_object,
                group=DKIMKEY_GROUP,
                version=DKIMKEY_VERSION,
                plural=DKIMKEY_PLURAL,
                timeout_seconds=timeout_seconds,
            ):
                if not self.running:
                    break
                if event.get('type') == 'ERROR':
                    logger.warning(f"Watch error: {event.get('raw_object')}")
                    return False
                metadata = event['object'].get('metadata', {})
                logger.debug(f"{event['type']} DKIMKey '{metadata.get('namespace')}/{metadata.get('name')}'")
                self._dispatch(reconciler, metadata.get('namespace', ''), metadata.get('name', ''))
        except ApiException as e:
            logger.error(f'Watch failed: {e.reason}')
            return False
        except Exception:
            logger.exception('Watch stream interrupted')
            return False
        finally:
            self._watch.stop()
            self._watch = None
        return True
