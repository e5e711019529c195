"""Static port classification tables: region, market and catchment."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Mapping

import yaml

from .domain_types import MarketSegment, Region

logger = logging.getLogger(__name__)


_DEFAULT_REGION_PORTS: Dict[Region, str] = {
    Region.ASIA_PACIFIC: """
        ICN NRT HKG SIN BKK PVG PEK KUL MNL CGK SYD MEL BLR BOM DEL MAA HYD CCU COK AMD
        LKO HKT CNX USM HND KIX NGO FUK TPE KHH SGN HAN DAC KTM ISB KHI LHE CMB MLE BJS
        CAN SZX CTU KMG AKL CHC BNE PER VNS PAT ATQ GOI PEW MUX LYP SKT DMK
        TRV PNQ CNN GWL JAI IXE AYJ CCJ GOX GAU BBI VGA VTZ NMI NAG TRZ IXZ IXR UDR IXC
        IXB HDO JDH STV IDR DED IXD IXA RPR HBX BDQ BHO CJB IXM IXG NDC VDY KJB TCR JLR
        BEK ISK SXV DGH KBV LGK IXX SXR IXJ RDP TIR SDW JSA KLH HSR GOP RJA AGR IXU AGX
        RQY SAG DPS JRG KNU PNY
    """,
    Region.EUROPE: """
        LHR CDG FRA AMS MAD FCO IST MUC LGW STN MAN EDI ORY NCE LYS BCN AGP ZRH GVA VIE
        CPH ARN OSL HEL DME SVO LED WAW PRG BUD ATH LIS DUB BRU MXP VCE BHX
    """,
    Region.MIDDLE_EAST: """
        JED RUH DXB DOH AUH KWI AMM BAH MCT DMM MED TJV BEY THR IKA BGW SLL SHJ HAS ABW
        ELQ TUO WAE AQI
    """,
    Region.AMERICAS: """
        JFK LAX ORD DFW SFO YYZ GRU EZE IAD ATL MIA IAH DEN SEA BOS EWR MEX CUN PTY BOG
        LIM SCL GIG YVR YUL PHX LAS MCO
    """,
    Region.AFRICA: """
        CAI JNB CPT NBO LOS ADD CAS ACC ALG TUN CMN RAK TNG DJE MIR AGA HBE SSH KAN CZL
        ORN NBE LXR ASW HRG DKR ABJ LUN HRE DAR EBB KGL MRU TNR MPM LAD BJM
    """,
}

_DEFAULT_DOMESTIC = """
    BLR BOM DEL MAA HYD CCU COK AMD LKO TRV PNQ CNN GWL JAI IXE AYJ CCJ GOX GAU BBI
    VGA VTZ NMI NAG TRZ IXZ IXR UDR IXC IXB HDO JDH STV IDR DED IXD IXA RPR HBX BDQ
    BHO CJB IXM IXG NDC VDY KJB TCR JLR BEK ISK SXV DGH IXJ RDP TIR SDW JSA KLH HSR
    RJA AGR IXU AGX RQY SAG JRG KNU PNY VNS PAT ATQ GOI IXX SXR GOP
"""

_DEFAULT_CATCHMENT = """
    HYD MAA IXG VGA VTZ RJA HBX GOI IXE MYQ TIR PNY TRZ IXM TRV COK CJB CCJ CNN VDY
    GBI TCR BLR NAG AGX PNQ RQY KJB
"""


def _codes(tokens: Iterable[object]) -> FrozenSet[str]:
    return frozenset(str(token).strip().upper() for token in tokens if str(token).strip())


def _default_regions() -> Dict[str, Region]:
    regions: Dict[str, Region] = {}
    for region, block in _DEFAULT_REGION_PORTS.items():
        for code in block.split():
            regions[code] = region
    return regions


@dataclass(frozen=True)
class ReferenceData:
    """Port lookups consumed by the core; the default set describes the BLR network."""

    port_regions: Mapping[str, Region] = field(default_factory=_default_regions)
    domestic_ports: FrozenSet[str] = field(default_factory=lambda: _codes(_DEFAULT_DOMESTIC.split()))
    catchment_ports: FrozenSet[str] = field(default_factory=lambda: _codes(_DEFAULT_CATCHMENT.split()))

    def region_for(self, port_code: str) -> Region:
        return self.port_regions.get(str(port_code or "").strip().upper(), Region.UNKNOWN)

    def market_for(self, port_code: str) -> MarketSegment:
        if str(port_code or "").strip().upper() in self.domestic_ports:
            return MarketSegment.DOMESTIC
        return MarketSegment.INTERNATIONAL

    def is_domestic(self, port_code: str) -> bool:
        return self.market_for(port_code) is MarketSegment.DOMESTIC

    def is_catchment(self, port_code: str) -> bool:
        return str(port_code or "").strip().upper() in self.catchment_ports

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "ReferenceData":
        """
        Build reference data from a mapping, layering it over the defaults.

        Recognised keys: ``regions`` (region name -> list of port codes),
        ``domestic`` and ``catchment`` (lists of port codes), and ``replace``
        (when true the defaults are discarded instead of extended).
        """
        if not isinstance(data, Mapping):
            raise TypeError("Reference data must be a mapping")
        replace = bool(data.get("replace", False))
        base = cls() if not replace else cls(port_regions={}, domestic_ports=frozenset(), catchment_ports=frozenset())

        regions = dict(base.port_regions)
        region_section = data.get("regions") or {}
        if not isinstance(region_section, Mapping):
            raise TypeError("'regions' must map region names to port code lists")
        for region_name, ports in region_section.items():
            region = Region.parse(region_name)
            if not isinstance(ports, list):
                raise TypeError(f"Ports for region {region_name!r} must be provided as a list")
            for code in _codes(ports):
                previous = regions.get(code)
                if previous is not None and previous is not region:
                    logger.warning("Port %s reassigned from %s to %s", code, previous.value, region.value)
                regions[code] = region

        domestic = set(base.domestic_ports) | _codes(data.get("domestic") or [])
        catchment = set(base.catchment_ports) | _codes(data.get("catchment") or [])
        return cls(
            port_regions=regions,
            domestic_ports=frozenset(domestic),
            catchment_ports=frozenset(catchment),
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ReferenceData":
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Reference data YAML not found at {config_path}")
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        reference = cls.from_mapping(data)
        logger.info(
            "Loaded reference data for %d ports (%d domestic, %d catchment) from %s",
            len(reference.port_regions),
            len(reference.domestic_ports),
            len(reference.catchment_ports),
            config_path,
        )
        return reference


DEFAULT_REFERENCE = ReferenceData()


__all__ = ["DEFAULT_REFERENCE", "ReferenceData"]
