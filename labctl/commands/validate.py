from pathlib import Path
from typing import List, Optional

import typer

from labctl.commands import common
from labctl.planning import validate as validate_topology
from labctl.reporting import EXIT_OK, EXIT_REJECTED, format_errors


def validate_cmd(
    file: Optional[Path] = common.FILE_OPTION,
    module: Optional[str] = common.MODULE_OPTION,
    module_type: Optional[str] = common.TYPE_OPTION,
    cluster_type: str = common.CLUSTER_TYPE_OPTION,
    name: Optional[str] = common.NAME_OPTION,
    nodes: Optional[str] = common.NODES_OPTION,
    first_ip: Optional[str] = common.FIRST_IP_OPTION,
    cni: Optional[str] = common.CNI_OPTION,
    size: Optional[str] = common.SIZE_OPTION,
    pod_network: Optional[str] = common.POD_NETWORK_OPTION,
    service_network: Optional[str] = common.SERVICE_NETWORK_OPTION,
    management: Optional[str] = common.MANAGEMENT_OPTION,
    provider: Optional[List[str]] = common.PROVIDER_OPTION,
    tool: Optional[List[str]] = common.TOOL_OPTION,
):
    """Run the structural, semantic and policy checks without planning."""
    defaults = common.planner_defaults()
    topology = common.load_topology(
        file, module, module_type, cluster_type, name, nodes, first_ip, cni, size,
        pod_network, service_network, management, provider, tool, defaults,
    )
    errors = validate_topology(topology, defaults)
    if errors:
        typer.echo(format_errors(errors), err=True)
        raise typer.Exit(code=EXIT_REJECTED)
    typer.echo("✅ Specification is valid")
    raise typer.Exit(code=EXIT_OK)
