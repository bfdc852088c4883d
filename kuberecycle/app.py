"""Application bootstrap for kube-recycle-bin.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → K8s clients → trust material → discovery
              → stores → webhook server → policy controller

Shutdown is graceful: components are stopped in reverse startup order and the
shared ApiClient is closed last. Each stop error is caught and logged
independently so one failing component does not block the others.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from kuberecycle.config import load_config
from kuberecycle.models.config import KubeRecycleConfig
from kuberecycle.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from kuberecycle.kube.clients import KubeClients

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class KubeRecycleApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    Calling ``stop()`` on an app that was never started (or already stopped)
    is safe.
    """

    def __init__(self) -> None:
        self.config: KubeRecycleConfig | None = None

        self._clients: KubeClients | None = None
        self._trust: object | None = None
        self._resolver: object | None = None
        self._item_store: object | None = None
        self._policy_store: object | None = None
        self._interceptor: object | None = None
        self._rest_server: object | None = None
        self._controller: object | None = None

        # Collaborator-facing services, built on the same clients
        self.restore_service: object | None = None
        self.policy_manager: object | None = None

        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        The caller (main()) re-raises this as a non-zero exit.
        """
        # --- 1. Configuration -------------------------------------------
        self.config = load_config()

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("kube-recycle-bin starting", version=_version())

        # --- 3. Kubernetes clients ---------------------------------------
        await self._start_k8s_clients()

        # --- 4. TLS trust material ---------------------------------------
        await self._start_trust_material()

        # --- 5. Discovery resolver ---------------------------------------
        await self._start_discovery()

        # --- 6. Recycling stores -----------------------------------------
        await self._start_stores()

        # --- 7. Webhook server -------------------------------------------
        await self._start_webhook()

        # --- 8. Policy controller ----------------------------------------
        await self._start_controller()

        self._running = True
        self._log.info("kube-recycle-bin started", port=self.config.webhook.port)

    # ------------------------------------------------------------------
    # Component startup helpers
    # ------------------------------------------------------------------

    async def _start_k8s_clients(self) -> None:
        """Build the shared ApiClient from in-cluster config or kubeconfig."""
        assert self._log is not None
        self._log.debug("starting k8s clients")
        try:
            from kuberecycle.kube.clients import KubeClients

            self._clients = await KubeClients.connect()
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    async def _start_trust_material(self) -> None:
        """Fetch or create the webhook key pair and write it for the TLS listener."""
        assert self._log is not None
        assert self.config is not None
        assert self._clients is not None
        self._log.debug("starting trust material")
        webhook = self.config.webhook
        try:
            from kuberecycle.certs import TrustMaterialProvider, write_tls_files

            provider = TrustMaterialProvider(
                self._clients.core_v1,
                namespace=webhook.namespace,
                secret_name=webhook.tls_secret_name,
                host=webhook.dns_name,
                alternate_dns=[webhook.service_name, f"{webhook.service_name}.{webhook.namespace}"],
            )
            material = await provider.fetch_or_create()
            await asyncio.to_thread(write_tls_files, material, webhook.cert_file, webhook.key_file)
            self._trust = provider
            self._log.info("trust material ready", secret=webhook.tls_secret_name, host=webhook.dns_name)
        except Exception as exc:
            raise _ComponentError("trust_material", exc) from exc

    async def _start_discovery(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self._clients is not None
        self._log.debug("starting discovery resolver")
        try:
            from kuberecycle.discovery import DiscoveryClient, DiscoveryResolver

            self._resolver = DiscoveryResolver(
                DiscoveryClient(self._clients.rest),
                cache_ttl=self.config.discovery.cache_ttl_seconds,
            )
            self._log.info("discovery resolver started", cache_ttl=self.config.discovery.cache_ttl_seconds)
        except Exception as exc:
            raise _ComponentError("discovery", exc) from exc

    async def _start_stores(self) -> None:
        """Create the RecycleItem/RecyclePolicy stores and the services built on them."""
        assert self._log is not None
        assert self._clients is not None
        self._log.debug("starting stores")
        try:
            from kuberecycle.policies import PolicyManager
            from kuberecycle.restore import RestoreService
            from kuberecycle.store import RecycleItemStore, RecyclePolicyStore

            self._item_store = RecycleItemStore(self._clients.custom_objects)
            self._policy_store = RecyclePolicyStore(self._clients.custom_objects)
            self.restore_service = RestoreService(self._item_store, self._clients.rest)
            self.policy_manager = PolicyManager(self._resolver, self._policy_store, self._item_store)
            self._log.info("stores started")
        except Exception as exc:
            raise _ComponentError("stores", exc) from exc

    async def _start_webhook(self) -> None:
        """Start the TLS uvicorn server hosting the admission interceptor."""
        assert self._log is not None
        assert self.config is not None
        webhook = self.config.webhook
        self._log.debug("starting webhook server")
        try:
            import uvicorn  # type: ignore[import-untyped]

            from kuberecycle.webhook import AdmissionInterceptor, create_app

            self._interceptor = AdmissionInterceptor(
                self._item_store,
                self._resolver,
                max_object_bytes=webhook.max_object_bytes,
            )
            fastapi_app = create_app(interceptor=self._interceptor, config=webhook)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=webhook.port,
                ssl_certfile=webhook.cert_file,
                ssl_keyfile=webhook.key_file,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="webhook-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("webhook server started", port=webhook.port, path=webhook.path)
        except Exception as exc:
            raise _ComponentError("webhook", exc) from exc

    async def _start_controller(self) -> None:
        """Start the RecyclePolicy watch and reconcile workers."""
        assert self._log is not None
        assert self.config is not None
        assert self._clients is not None
        if not self.config.controller.enabled:
            self._log.info("policy controller disabled (controller.enabled=false)")
            return

        self._log.debug("starting policy controller")
        try:
            from kuberecycle.controller import PolicyController, PolicyReconciler, RegistrationClient

            registrations = RegistrationClient(self._clients.admission_v1)
            reconciler = PolicyReconciler(
                self._policy_store,
                registrations,
                self._trust,
                self.config.webhook,
                requeue_after=self.config.controller.requeue_after_seconds,
            )
            controller = PolicyController(
                reconciler,
                self._clients.custom_objects,
                self._policy_store,
                registrations,
                config=self.config.controller,
            )
            await controller.start()
            self._controller = controller
            self._log.info("policy controller started", workers=self.config.controller.workers)
        except Exception as exc:
            raise _ComponentError("controller", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            # Never started, nothing to do
            return

        log = self._log or get_logger("app")
        log.info("kube-recycle-bin shutting down")

        self._running = False

        await self._stop_component("controller", self._controller)
        self._controller = None

        # Let uvicorn drain in-flight admission requests before cancelling it
        if self._rest_server is not None:
            self._rest_server.should_exit = True  # type: ignore[attr-defined]
        if self._background_tasks:
            _, pending = await asyncio.wait(self._background_tasks, timeout=_SHUTDOWN_GRACE_SECONDS)
            for task in pending:
                task.cancel()
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()
        self._rest_server = None

        await self._stop_k8s_clients()
        log.info("kube-recycle-bin stopped")

    async def _stop_component(self, name: str, component: object | None) -> None:
        """Call stop() on a component if it has that method, catching all errors."""
        if component is None:
            return
        log = self._log or get_logger("app")
        stop_fn = getattr(component, "stop", None)
        if stop_fn is None:
            return
        try:
            result = stop_fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component stop timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component stop raised an error", component=name, error=str(exc))

    async def _stop_k8s_clients(self) -> None:
        """Close the kubernetes-asyncio ApiClient connection pool."""
        if self._clients is None:
            return
        log = self._log or get_logger("app")
        try:
            await self._clients.close()
        except Exception as exc:
            log.debug("k8s client close raised (non-fatal)", error=str(exc))
        self._clients = None


def _version() -> str:
    from kuberecycle import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = KubeRecycleApp()
    loop = asyncio.get_running_loop()

    shutdown_task: asyncio.Task[None] | None = None

    def _request_shutdown() -> None:
        nonlocal shutdown_task
        if shutdown_task is not None:
            return
        shutdown_task = asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        # Block until shutdown is triggered (background tasks run concurrently)
        while app._running:
            await asyncio.sleep(1)
        if shutdown_task is not None:
            await shutdown_task
    except _ComponentError as exc:
        # A mandatory component failed; log and exit non-zero
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        # Ensure stop runs even if start raises or is interrupted
        if app._running:
            await app.stop()


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())
