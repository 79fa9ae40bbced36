"""Desired-set builder: turn the workload inventory into fqdn -> RRset."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from .errors import MetadataError
from .generators import FqdnGenerator
from .metadata import Container, Host
from .records import DesiredMap, MetadataRecord

logger = logging.getLogger(__name__)


def build_desired_set(
    containers: Iterable[Container],
    host_lookup: Callable[[str], Host],
    environment_name: str,
    root_domain: str,
    ttl: int,
    generator: FqdnGenerator,
    template: Optional[str] = None,
    require_ports: bool = False,
) -> DesiredMap:
    """Brief: Compute the DesiredMap for one reconciliation cycle.

    Inputs:
      - containers: Workloads from MetadataClient.list_containers().
      - host_lookup: Callable(host_uuid) -> Host; raises MetadataError when the
        host cannot be found.
      - environment_name: Orchestrator environment name.
      - root_domain: Managed zone (without trailing dot).
      - ttl: TTL for generated A records.
      - generator: Naming strategy from the generator registry.
      - template: Optional name template (None uses the generator default).
      - require_ports: When True, containers without published ports are
        skipped.

    Outputs:
      - Dict mapping lowercase absolute fqdn -> MetadataRecord (type A). When
        several workloads resolve to one name their addresses are merged and
        the first contributor's service/stack names are kept.
    """
    desired: DesiredMap = {}
    for container in containers:
        if not container.service_name:
            continue
        if require_ports and not container.ports:
            continue
        if not container.host_uuid:
            logger.debug("Container's %s host_uuid is empty", container.name)
            continue
        try:
            host = host_lookup(container.host_uuid)
        except MetadataError as exc:
            logger.info("Skipping container %s: %s", container.name, exc)
            continue

        ip = host.external_ip()
        if not ip:
            logger.debug("Host %s has no usable address", host.uuid)
            continue

        name = generator.generate(
            template, container, environment_name, root_domain
        )
        existing = desired.get(name)
        if existing is None:
            desired[name] = MetadataRecord(
                fqdn=name,
                type="A",
                ttl=ttl,
                values=(ip,),
                service_name=container.service_name,
                stack_name=container.stack_name,
            )
        elif ip not in existing.values:
            desired[name] = existing.with_values(sorted(existing.values + (ip,)))
    return desired
