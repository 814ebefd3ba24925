"""Configuration management for the labctl application."""
import os

from dotenv import load_dotenv

from labctl.planning.defaults import PlannerDefaults

# Load environment variables from .env file if it exists
load_dotenv()

class Config:
    """Application configuration with sensible defaults."""

    # Addressing
    FIRST_IP: str = os.getenv("LAB_FIRST_IP", "192.168.56.10")
    MGMT_IP: str = os.getenv("LAB_MGMT_IP", "192.168.56.5")
    POD_CIDR: str = os.getenv("LAB_POD_CIDR", "10.244.0.0/16")
    SVC_CIDR: str = os.getenv("LAB_SVC_CIDR", "10.96.0.0/12")

    # Sizing and limits
    SIZE_PROFILE: str = os.getenv("LAB_SIZE_PROFILE", "medium").lower()
    MAX_TOTAL_VMS: int = int(os.getenv("LAB_MAX_TOTAL_VMS", "50"))
    MAX_VMS_PER_CLUSTER: int = int(os.getenv("LAB_MAX_VMS_PER_CLUSTER", "20"))

    # Rendering
    BOX_IMAGE: str = os.getenv("LAB_BOX_IMAGE", "ubuntu/jammy64")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # API
    API_KEY: str = os.getenv("LAB_API_KEY", "labctl-secret")

    @classmethod
    def planner_defaults(cls) -> PlannerDefaults:
        """Build the planner defaults from the current configuration."""
        return PlannerDefaults(
            first_address=cls.FIRST_IP,
            management_address=cls.MGMT_IP,
            pod_network=cls.POD_CIDR,
            service_network=cls.SVC_CIDR,
            size_profile=cls.SIZE_PROFILE,
            max_total_vms=cls.MAX_TOTAL_VMS,
            max_vms_per_cluster=cls.MAX_VMS_PER_CLUSTER,
        )

    @classmethod
    def validate(cls) -> None:
        """Validate configuration values."""
        cls.planner_defaults()
