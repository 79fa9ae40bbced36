from __future__ import annotations

import argparse
import functools
import logging
import signal
import threading
from typing import Any, Dict, List, Optional

from .cattle import CattleNotifier, NullNotifier
from .config import AgentConfig, init_logging, load_config
from .desired import build_desired_set
from .errors import ConfigurationError, ExtDnsError
from .generators import FqdnGenerator, default_generators
from .health import HealthServerHandle, HealthState, start_health_server
from .loop import PollingLoop
from .metadata import MetadataClient
from .providers import default_registry
from .providers.dryrun import DryRunProvider
from .records import DesiredMap
from .reconcile import Reconciler

logger = logging.getLogger("extdns.main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="extdns",
        description="Keep a public DNS zone in sync with Rancher workloads",
    )
    parser.add_argument("--config", default=None, help="Path to YAML config (optional)")
    parser.add_argument(
        "-v",
        "--var",
        action="append",
        default=[],
        metavar="KEY=YAML",
        help="Set a config variable used for ${KEY} expansion (repeatable)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log", default=None, help="Also log to this file")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log provider mutations instead of applying them",
    )
    return parser


def _cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    logging_cfg: Dict[str, Any] = {}
    if args.debug:
        logging_cfg["level"] = "debug"
    if args.log:
        logging_cfg["file"] = args.log
    if logging_cfg:
        overrides["logging"] = logging_cfg
    if args.dry_run:
        overrides["dry_run"] = True
    return overrides


def create_provider(cfg: AgentConfig, metadata: MetadataClient):
    """Brief: Instantiate and initialise the configured provider.

    Inputs:
      - cfg: AgentConfig.
      - metadata: MetadataClient handed to providers that bootstrap from it.

    Outputs:
      - Initialised provider, wrapped in DryRunProvider when cfg.dry_run.

    Raises:
      - ConfigurationError on unknown providers or missing credentials.
    """
    registry = default_registry()
    provider_config = dict(cfg.provider.config)
    if cfg.uses_public_dns():
        provider_config.setdefault("metadata_url", metadata.url)
    provider = registry.create(cfg.provider.type, cfg.root_domain, **provider_config)
    if cfg.dry_run:
        logger.warning("Dry run: provider mutations are logged, not applied")
        return DryRunProvider(provider)
    return provider


def create_notifier(cfg: AgentConfig):
    if not cfg.cattle.url:
        return NullNotifier()
    return CattleNotifier(
        cfg.cattle.url,
        cfg.cattle.access_key or "",
        cfg.cattle.secret_key or "",
        timeout=cfg.cattle.timeout,
    )


def make_desired_builder(
    cfg: AgentConfig,
    metadata: MetadataClient,
    generator: FqdnGenerator,
    environment_name: str,
    root_domain: str,
):
    """Return a zero-arg callable computing this cycle's DesiredMap."""

    def _build() -> DesiredMap:
        return build_desired_set(
            metadata.list_containers(),
            metadata.get_host,
            environment_name,
            root_domain,
            cfg.ttl,
            generator,
            template=cfg.name_template,
            require_ports=cfg.require_ports,
        )

    return _build


def main(argv: List[str] | None = None) -> int:
    """
    Entry point for the extdns agent.

    Loads configuration, initialises the provider and metadata client, runs
    the upgrade adoption, starts the health endpoint and polls until a
    termination signal arrives.

    Args:
        argv: Command-line arguments.

    Returns:
        0 on a clean stop (SIGHUP), 1 on initialisation failure, 2 when
        terminated by SIGTERM/SIGINT.

    Example use:
        ROOT_DOMAIN=example.com PROVIDER=route53 extdns --debug
    """
    args = build_parser().parse_args(argv)

    try:
        cfg = load_config(args.config, cli_vars=args.var, overrides=_cli_overrides(args))
    except ConfigurationError as exc:
        print(str(exc))
        return 1

    init_logging(cfg.logging)
    logger.info("Starting external DNS agent")
    if args.config:
        logger.info("Loaded config from %s", args.config)

    health_handle: Optional[HealthServerHandle] = None
    try:
        generator = default_generators().get(cfg.fqdn_generator)
        generator.validate(cfg.name_template)

        metadata = MetadataClient(cfg.metadata.url, timeout=cfg.metadata.timeout)
        provider = create_provider(cfg, metadata)
        root_domain = getattr(provider, "root", "") or cfg.root_domain

        stack = metadata.wait_for_environment(max_backoff=cfg.metadata.max_backoff)
        environment_name, environment_uuid = stack.environment_name, stack.environment_uuid
        logger.info(
            "Environment %s (%s), root domain %s", environment_name, environment_uuid, root_domain
        )

        notifier = create_notifier(cfg)
        reconciler = Reconciler(
            provider,
            root_domain,
            cfg.ttl,
            environment_uuid,
            environment_name,
            notifier=notifier,
            guard_empty_inventory=cfg.guard_empty_inventory,
        )
        reconciler.adopt_legacy_records()
    except ExtDnsError as exc:
        logger.error("Initialisation failed: %s", exc)
        return 1

    health = HealthState()
    if cfg.health.enabled:
        probes = {"metadata": metadata.probe, "provider": provider.health_check}
        if isinstance(notifier, CattleNotifier):
            probes["cattle"] = notifier.test_connect
        health_handle = start_health_server(
            health, probes, host=cfg.health.host, port=cfg.health.port
        )

    loop = PollingLoop(
        metadata,
        make_desired_builder(cfg, metadata, generator, environment_name, root_domain),
        reconciler,
        poll_interval_ms=cfg.poll_interval_ms,
        health=health,
        force_resync_seconds=cfg.force_resync_seconds,
    )

    stop_event = threading.Event()
    exit_code = 0

    def _request_shutdown(reason: str, code: int, _signum=None, _frame=None) -> None:
        nonlocal exit_code
        if stop_event.is_set():
            return
        exit_code = code
        logger.info("Received %s, shutting down (exit code=%d)", reason, code)
        stop_event.set()

    for signame, code in (("SIGHUP", 0), ("SIGTERM", 2), ("SIGINT", 2)):
        signum = getattr(signal, signame, None)
        if signum is None:
            continue
        try:
            signal.signal(signum, functools.partial(_request_shutdown, signame, code))
        except ValueError:
            logger.warning("Could not install %s handler outside the main thread", signame)

    logger.info("Startup completed")
    try:
        loop.run(stop_event)
    finally:
        if health_handle is not None:
            health_handle.stop()
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
