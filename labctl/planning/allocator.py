"""
Sequential IPv4 address allocation for lab VMs.

Addresses are handed out in order from a starting address, skipping the
conventionally reserved host offsets inside the /24:

    .1  host / gateway
    .2  potential gateway
    .5  management VM

and never passing the last usable host (.254). Allocation is a pure
function of its inputs; every problem comes back as a Failure carrying an
AllocationError instead of an exception.
"""
import ipaddress
import logging
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

from .models import ClusterKind, ClusterSpecification, parse_ipv4
from .result import Failure, Result, Success

logger = logging.getLogger(__name__)

DEFAULT_RESERVED_OFFSETS: FrozenSet[int] = frozenset({1, 2, 5})
# The management VM is the one allowed to sit on .5
MANAGEMENT_RESERVED_OFFSETS: FrozenSet[int] = frozenset({1, 2})
SUBNET_CEILING_OFFSET = 254
HOST_MASK = 0xFF
MAX_IPV4 = 0xFFFFFFFF


class AllocationErrorKind(str, Enum):
    INVALID_ADDRESS = 'invalid-address'
    INVALID_COUNT = 'invalid-count'
    SUBNET_BOUNDARY = 'subnet-boundary'
    RESERVED_EXHAUSTED = 'reserved-exhausted'
    COLLISION = 'collision'


@dataclass(frozen=True)
class AllocationError:
    """A planning-time addressing failure."""
    kind: AllocationErrorKind
    message: str
    clusters: Tuple[str, ...] = ()
    address: Optional[str] = None
    fit: Optional[int] = None

    def with_cluster(self, cluster: str) -> 'AllocationError':
        return AllocationError(
            kind=self.kind,
            message=f"Cluster '{cluster}': {self.message}",
            clusters=(cluster,),
            address=self.address,
            fit=self.fit,
        )

    def to_dict(self):
        return {
            'kind': self.kind.value,
            'message': self.message,
            'clusters': list(self.clusters),
            'address': self.address,
            'fit': self.fit,
        }


def host_offset(address: Union[ipaddress.IPv4Address, int]) -> int:
    """Last-octet equivalent of an address inside its /24."""
    return int(address) & HOST_MASK


def fit_count(start: ipaddress.IPv4Address,
              reserved_offsets: Iterable[int] = DEFAULT_RESERVED_OFFSETS,
              subnet_ceiling_offset: int = SUBNET_CEILING_OFFSET) -> int:
    """How many non-reserved addresses exist from start up to the ceiling."""
    reserved = frozenset(reserved_offsets)
    first = host_offset(start)
    return sum(1 for offset in range(first, subnet_ceiling_offset + 1) if offset not in reserved)


def allocate(start_address: str,
             count: int,
             reserved_offsets: Iterable[int] = DEFAULT_RESERVED_OFFSETS,
             subnet_ceiling_offset: int = SUBNET_CEILING_OFFSET) -> Result[Tuple[str, ...], AllocationError]:
    """Allocate ``count`` sequential addresses starting at ``start_address``.

    Args:
        start_address: dotted-quad IPv4 host address
        count: number of addresses wanted, at least 1
        reserved_offsets: last-octet values never handed out
        subnet_ceiling_offset: last usable last-octet value

    Returns:
        Success with the ordered address tuple, or Failure with an AllocationError
    """
    start = parse_ipv4(start_address)
    if start is None:
        return Failure(AllocationError(
            kind=AllocationErrorKind.INVALID_ADDRESS,
            message=f"Invalid IPv4 start address: '{start_address}'",
            address=start_address if isinstance(start_address, str) else None,
        ))
    if not isinstance(count, int) or count < 1:
        return Failure(AllocationError(
            kind=AllocationErrorKind.INVALID_COUNT,
            message=f"Address count must be at least 1, got {count}",
        ))

    reserved = frozenset(reserved_offsets)
    allocated: List[str] = []
    offset = 0
    while len(allocated) < count:
        value = int(start) + offset
        if value > MAX_IPV4 or host_offset(value) > subnet_ceiling_offset or host_offset(value) < host_offset(start):
            fit = fit_count(start, reserved, subnet_ceiling_offset)
            if fit == 0 and host_offset(start) <= subnet_ceiling_offset:
                return Failure(AllocationError(
                    kind=AllocationErrorKind.RESERVED_EXHAUSTED,
                    message=(
                        f"Every address from {start} to the subnet boundary "
                        f"(.{subnet_ceiling_offset}) is reserved"
                    ),
                    address=str(start),
                    fit=0,
                ))
            return Failure(AllocationError(
                kind=AllocationErrorKind.SUBNET_BOUNDARY,
                message=(
                    f"Allocating {count} address(es) from {start} exceeds the subnet boundary "
                    f"(.{subnet_ceiling_offset}); only {fit} address(es) fit"
                ),
                address=str(ipaddress.IPv4Address(value)) if value <= MAX_IPV4 else None,
                fit=fit,
            ))
        if host_offset(value) not in reserved:
            allocated.append(str(ipaddress.IPv4Address(value)))
        offset += 1

    return Success(tuple(allocated))


def allocate_for_cluster(cluster: ClusterSpecification,
                         default_address: str,
                         subnet_ceiling_offset: int = SUBNET_CEILING_OFFSET) -> Result[Tuple[str, ...], AllocationError]:
    """Allocate the addresses a cluster's generated nodes need."""
    start = cluster.start_address or default_address
    reserved = MANAGEMENT_RESERVED_OFFSETS if cluster.kind is ClusterKind.NONE else DEFAULT_RESERVED_OFFSETS
    result = allocate(start, cluster.expected_node_count(), reserved, subnet_ceiling_offset)
    if result.is_failure:
        return Failure(result.error.with_cluster(cluster.name))
    logger.debug(f"Allocated {len(result.value)} address(es) for {cluster.name}: {', '.join(result.value)}")
    return result


def check_collisions(allocations: Sequence[Tuple[str, Sequence[str]]]) -> Result[None, AllocationError]:
    """Verify no address is claimed by two clusters.

    Runs once all allocations are known: one pass over every
    (address, cluster) pair sorted by address.
    """
    claimed = []
    for cluster, addresses in allocations:
        for address in addresses:
            parsed = parse_ipv4(address)
            if parsed is None:
                return Failure(AllocationError(
                    kind=AllocationErrorKind.INVALID_ADDRESS,
                    message=f"Cluster '{cluster}' claims an invalid address: '{address}'",
                    clusters=(cluster,),
                    address=address,
                ))
            claimed.append((int(parsed), str(parsed), cluster))
    claimed.sort()
    for (value, address, first), (next_value, _, second) in zip(claimed, claimed[1:]):
        if value == next_value:
            if first == second:
                message = f"Address {address} is assigned twice within cluster '{first}'"
            else:
                message = f"Address {address} is claimed by both cluster '{first}' and cluster '{second}'"
            return Failure(AllocationError(
                kind=AllocationErrorKind.COLLISION,
                message=message,
                clusters=(first, second),
                address=address,
            ))
    return Success(None)
