"""Externally supplied planner defaults."""
from pydantic import BaseModel, Field, field_validator

from .models import DEFAULT_POD_NETWORK, DEFAULT_SERVICE_NETWORK, SizeProfile, parse_ipv4, parse_network


class PlannerDefaults(BaseModel):
    """Values the planner falls back to when a specification leaves them out."""
    first_address: str = Field(
        default="192.168.56.10",
        description="Starting address for a single cluster without an explicit one"
    )
    management_address: str = Field(
        default="192.168.56.5",
        description="Reserved address for the management VM"
    )
    pod_network: str = Field(default=DEFAULT_POD_NETWORK, description="Default kubeadm pod CIDR")
    service_network: str = Field(default=DEFAULT_SERVICE_NETWORK, description="Default kubeadm service CIDR")
    size_profile: SizeProfile = Field(default=SizeProfile.MEDIUM, description="Default VM size profile")
    max_total_vms: int = Field(default=50, ge=1, description="Upper bound on VMs across the topology")
    max_vms_per_cluster: int = Field(default=20, ge=1, description="Upper bound on VMs in one cluster")
    subnet_ceiling_offset: int = Field(default=254, ge=1, le=255, description="Last usable host offset")
    kube_api_port: int = Field(default=6443, description="API server port exported to kubeadm nodes")

    model_config = {"frozen": True}

    @field_validator('first_address', 'management_address')
    @classmethod
    def check_address(cls, v: str) -> str:
        if parse_ipv4(v) is None:
            raise ValueError(f"not an IPv4 address: {v}")
        return v

    @field_validator('pod_network', 'service_network')
    @classmethod
    def check_network(cls, v: str) -> str:
        if parse_network(v) is None:
            raise ValueError(f"not a CIDR: {v}")
        return v
