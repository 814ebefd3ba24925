import logging
from pathlib import Path
from typing import List, Optional

import typer

from labctl.commands import common
from labctl.config import Config
from labctl.planning import PlanOrchestrator
from labctl.render import render_plan
from labctl.reporting import EXIT_OK, EXIT_REJECTED, exit_code, format_outcome
from labctl.utils.fs import OutputExistsError, write_atomic

logger = logging.getLogger(__name__)


def generate_cmd(
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
    out: Optional[Path] = typer.Option(None, "--out", help="Output directory (default <type>-<module>)"),
    box: str = typer.Option(Config.BOX_IMAGE, "--box", help="Vagrant box image"),
):
    """Plan a topology and write the Vagrant lab scaffold."""
    defaults = common.planner_defaults()
    topology = common.load_topology(
        file, module, module_type, cluster_type, name, nodes, first_ip, cni, size,
        pod_network, service_network, management, provider, tool, defaults,
    )
    outcome = PlanOrchestrator(defaults).plan(topology)
    if not outcome.planned:
        typer.echo(format_outcome(outcome), err=True)
        raise typer.Exit(code=exit_code(outcome))

    output_dir = out or Path(topology.module.default_output_dir)
    logger.debug(f"Rendering {len(outcome.plan.nodes)} VM(s) into {output_dir}")
    try:
        write_atomic(output_dir, render_plan(outcome.plan, box))
    except OutputExistsError as e:
        typer.echo(f"❌ {e}\n  💡 Use --out to target a different path", err=True)
        raise typer.Exit(code=EXIT_REJECTED)

    typer.echo(format_outcome(outcome))
    typer.echo(f"✓ Generated lab scaffold → {output_dir}")
    raise typer.Exit(code=EXIT_OK)
