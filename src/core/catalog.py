#!/usr/bin/env -S python3 -B -u
"""
Target Catalog

Static registry of the regional ISP vantage points used as traceroute
destinations, grouped by location and by carrier group. Every entry is
validated when this module is imported; a malformed address raises
CatalogError.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

from fasttrace.core.models import Carrier, CarrierGroup, VantagePoint


@dataclass(frozen=True)
class Location:
    """All vantage points of one city, keyed by carrier."""
    name: str
    points: Dict[Carrier, VantagePoint]

    def __getitem__(self, carrier: Carrier) -> VantagePoint:
        return self.points[carrier]

    def __contains__(self, carrier: Carrier) -> bool:
        return carrier in self.points


def _location(name: str, **addresses: str) -> Location:
    return Location(
        name=name,
        points={
            Carrier(code): VantagePoint(location=name, carrier=Carrier(code), ip=ip)
            for code, ip in addresses.items()
        },
    )


BEIJING = _location(
    "Beijing",
    CT163="219.141.136.12",
    CU169="202.106.50.1",
    CM="221.179.155.161",
    EDU="202.205.109.205",
)
SHANGHAI = _location(
    "Shanghai",
    CT163="202.96.209.133",
    CTCN2="58.32.0.1",
    CU169="210.22.97.1",
    CU9929="210.13.66.238",
    CM="211.136.112.200",
    EDU="202.120.2.101",
)
HANGZHOU = _location(
    "Hangzhou",
    CT163="202.101.172.35",
    CU169="221.12.1.227",
    CM="211.140.13.188",
    EDU="210.32.0.1",
)
GUANGZHOU = _location(
    "Guangzhou",
    CT163="58.60.188.222",
    CU169="210.21.196.6",
    CM="120.196.165.24",
)
HEFEI = _location(
    "Hefei",
    EDU="202.38.64.1",
    CST="159.226.254.1",
)
CHANGSHA = _location(
    "Changsha",
    EDU="202.197.64.1",
)


class TargetCatalog:
    """
    Read-only view over the vantage point registry.

    Groups are fixed ordered tuples; the order is the order in which the
    session runs them.
    """

    LOCATIONS: Tuple[Location, ...] = (BEIJING, SHANGHAI, HANGZHOU, GUANGZHOU, HEFEI, CHANGSHA)

    GROUPS: Dict[CarrierGroup, Tuple[VantagePoint, ...]] = {
        CarrierGroup.TELECOM: (
            BEIJING[Carrier.CT163],
            SHANGHAI[Carrier.CT163],
            SHANGHAI[Carrier.CTCN2],
            HANGZHOU[Carrier.CT163],
            GUANGZHOU[Carrier.CT163],
        ),
        CarrierGroup.UNICOM: (
            BEIJING[Carrier.CU169],
            SHANGHAI[Carrier.CU169],
            SHANGHAI[Carrier.CU9929],
            HANGZHOU[Carrier.CU169],
            GUANGZHOU[Carrier.CU169],
        ),
        CarrierGroup.MOBILE: (
            BEIJING[Carrier.CM],
            SHANGHAI[Carrier.CM],
            HANGZHOU[Carrier.CM],
            GUANGZHOU[Carrier.CM],
        ),
        # CSTNET stays in the education group until it has enough data to stand alone
        CarrierGroup.EDUCATION: (
            BEIJING[Carrier.EDU],
            SHANGHAI[Carrier.EDU],
            HANGZHOU[Carrier.EDU],
            HEFEI[Carrier.EDU],
            HEFEI[Carrier.CST],
            CHANGSHA[Carrier.EDU],
        ),
    }

    ALL_ORDER: Tuple[CarrierGroup, ...] = (
        CarrierGroup.TELECOM,
        CarrierGroup.UNICOM,
        CarrierGroup.MOBILE,
        CarrierGroup.EDUCATION,
    )

    def group(self, group: CarrierGroup) -> Tuple[VantagePoint, ...]:
        """Return the ordered vantage points of a carrier group."""
        return self.GROUPS[CarrierGroup(group)]

    def all_groups(self) -> Tuple[CarrierGroup, ...]:
        return self.ALL_ORDER

    def location(self, name: str) -> Location:
        for location in self.LOCATIONS:
            if location.name.lower() == name.lower():
                return location
        raise KeyError(name)

    def vantage_point(self, location: str, carrier: Carrier) -> VantagePoint:
        return self.location(location)[Carrier(carrier)]

    def __iter__(self):
        for group in self.ALL_ORDER:
            yield from self.GROUPS[group]

    def __len__(self) -> int:
        return sum(len(points) for points in self.GROUPS.values())
