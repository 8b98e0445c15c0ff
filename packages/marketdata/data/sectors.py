"""Overlay live sector performance onto the static sector reference list."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

import structlog

from marketdata.models import SectorPerformance, SectorRecord

logger = structlog.get_logger(__name__)

# Provider sector label -> display name used by the static reference list.
# Keep in sync with whoever maintains that list.
SECTOR_NAME_MAP: dict[str, str] = {
    "Information Technology": "Technology",
    "Energy": "Energy",
    "Health Care": "Healthcare",
    "Financials": "Financials",
    "Consumer Discretionary": "Consumer Discretionary",
    "Consumer Staples": "Consumer Staples",
    "Industrials": "Industrials",
    "Utilities": "Utilities",
    "Materials": "Materials",
    "Real Estate": "Real Estate",
    "Communication Services": "Communication Services",
}


def merge_sector_performance(
    static_sectors: Sequence[SectorRecord | Mapping[str, Any]],
    live: Mapping[str, SectorPerformance | Mapping[str, Any]],
    name_map: Mapping[str, str] = SECTOR_NAME_MAP,
) -> list[SectorRecord]:
    """Return the static records with live perf substituted where available.

    Records whose sector is absent upstream keep their static perf and are
    marked ``live=False``.  Upstream labels with no mapping are ignored
    (logged), as are labels mapping to a name not in the static list.
    Input order is preserved.
    """
    by_name: dict[str, SectorPerformance] = {}
    for label, perf in live.items():
        display = name_map.get(label)
        if display is None:
            logger.debug("sector_label_unmapped", label=label)
            continue
        by_name[display] = (
            perf if isinstance(perf, SectorPerformance) else SectorPerformance.model_validate(perf)
        )

    merged = []
    for sector in static_sectors:
        record = sector if isinstance(sector, SectorRecord) else SectorRecord.model_validate(sector)
        perf = by_name.get(record.name)
        if perf is None:
            merged.append(record.model_copy(update={"live": False}))
        else:
            merged.append(record.model_copy(update={"perf": perf, "live": True}))

    logger.info("sectors_merged", total=len(merged), live=sum(1 for r in merged if r.live))
    return merged
