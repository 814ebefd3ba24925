"""Options and input handling shared by the planning commands."""
from pathlib import Path
from typing import List, Optional

import typer

from labctl.config import Config
from labctl.planning import PlannerDefaults, TopologySpecification
from labctl.reporting import EXIT_REJECTED
from labctl.utils.loader import SpecificationLoadError, from_flags, load_yaml

FILE_OPTION = typer.Option(None, "--file", "-f", help="Topology YAML file")
MODULE_OPTION = typer.Option(None, "--module", help="Module number (e.g. m1, m7)")
TYPE_OPTION = typer.Option(None, "--type", help="Module type (e.g. pt, hw, exam-prep)")
CLUSTER_TYPE_OPTION = typer.Option("kind", "--cluster-type", help="none|mgmt|kind|minikube|kubeadm")
NAME_OPTION = typer.Option(None, "--name", help="Cluster name (default clu-<module>-<type>-<kind>)")
NODES_OPTION = typer.Option(None, "--nodes", help="kubeadm node counts, e.g. 1m,2w")
FIRST_IP_OPTION = typer.Option(None, "--first-ip", help="First address of the cluster")
CNI_OPTION = typer.Option(None, "--cni", help="CNI plugin for kubeadm clusters")
SIZE_OPTION = typer.Option(None, "--size", help="small|medium|large")
POD_NETWORK_OPTION = typer.Option(None, "--pod-network", help="Pod CIDR for kubeadm clusters")
SERVICE_NETWORK_OPTION = typer.Option(None, "--service-network", help="Service CIDR for kubeadm clusters")
MANAGEMENT_OPTION = typer.Option(None, "--management", help="Add a management VM with this name")
PROVIDER_OPTION = typer.Option(None, "--provider", help="Cloud provider for the management VM (repeatable)")
TOOL_OPTION = typer.Option(None, "--tool", help="Extra tool for the management VM (repeatable)")


def planner_defaults() -> PlannerDefaults:
    return Config.planner_defaults()


def load_topology(file: Optional[Path],
                  module: Optional[str],
                  module_type: Optional[str],
                  cluster_type: str,
                  name: Optional[str],
                  nodes: Optional[str],
                  first_ip: Optional[str],
                  cni: Optional[str],
                  size: Optional[str],
                  pod_network: Optional[str],
                  service_network: Optional[str],
                  management: Optional[str],
                  providers: Optional[List[str]],
                  tools: Optional[List[str]],
                  defaults: PlannerDefaults) -> TopologySpecification:
    """Read the topology from --file, or build it from flags.

    Load problems end the command with the rejection exit code.
    """
    try:
        if file is not None:
            return load_yaml(file, defaults)
        if not module or not module_type:
            raise SpecificationLoadError("Either --file or both --module and --type are required")
        return from_flags(
            module=module,
            module_type=module_type,
            cluster_type=cluster_type,
            name=name,
            nodes=nodes,
            first_ip=first_ip,
            cni=cni,
            size=size,
            pod_network=pod_network,
            service_network=service_network,
            management=management,
            providers=providers,
            tools=tools,
            defaults=defaults,
        )
    except SpecificationLoadError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=EXIT_REJECTED)
