"""
Metrics Service — the single implementation of the derived-metric formulas.

Every path that creates or mutates a CampaignStats record (auto-provisioning,
the pulse simulator, the live sync) goes through ``derive`` so CTR/CPC/CPA/CPM/ROAS
never diverge between call sites. All ratios are 0 when their denominator is 0.
"""

import logging
import math
from typing import Any, Iterable, Mapping, Optional

from adpulse.config import get_settings
from adpulse.schemas import CampaignStats
from adpulse.utils import to_float, to_int, utcnow

logger = logging.getLogger(__name__)

COUNTER_FIELDS = ("spend", "impressions", "clicks", "conversions", "reach")


def _finite(value: float) -> float:
    return value if math.isfinite(value) else 0.0


def _ratio(numerator: float, denominator: float) -> float:
    if denominator <= 0:
        return 0.0
    return _finite(numerator / denominator)


def count_conversions(actions: Optional[Iterable[Mapping[str, Any]]], allowed: Optional[frozenset] = None) -> int:
    """
    Sum insight ``actions`` whose action_type is in the conversion allow-list.
    The allow-list comes from settings (CONVERSION_ACTION_TYPES) and is the only
    one used anywhere: live sync and insight history both count through here.
    """
    if allowed is None:
        allowed = get_settings().conversion_action_type_set
    total = 0.0
    for action in actions or []:
        if not isinstance(action, Mapping):
            continue
        if action.get("action_type") in allowed:
            total += to_float(action.get("value"))
    return int(total)


def derive(raw: Mapping[str, Any], aov: Optional[float] = None) -> dict:
    """
    Derive a fully populated metric block from raw counters.

    Accepts any subset of spend, impressions, clicks, conversions, reach and
    frequency. Missing or malformed values count as 0. ROAS uses the configured
    average order value, so it is an estimate unless real revenue exists.
    """
    if aov is None:
        aov = get_settings().average_order_value

    # Ratios are derived from the stored (rounded) spend
    spend = round(max(to_float(raw.get("spend")), 0.0), 2)
    impressions = max(to_int(raw.get("impressions")), 0)
    clicks = max(to_int(raw.get("clicks")), 0)
    conversions = max(to_int(raw.get("conversions")), 0)
    reach = max(to_int(raw.get("reach")), 0)

    frequency = to_float(raw.get("frequency"))
    if frequency <= 0:
        frequency = _ratio(impressions, reach)

    return {
        "spend": spend,
        "impressions": impressions,
        "clicks": clicks,
        "conversions": conversions,
        "reach": reach,
        "frequency": frequency,
        "ctr": _ratio(clicks, impressions),
        "cpc": _ratio(spend, clicks),
        "cpm": _finite(_ratio(spend, impressions) * 1000),
        "cpa": _ratio(spend, conversions),
        "roas": _ratio(conversions * to_float(aov), spend),
        "last_sync": utcnow().isoformat(),
    }


def build_stats(raw: Mapping[str, Any], aov: Optional[float] = None, **identity) -> CampaignStats:
    """Build a CampaignStats from identity fields plus raw counters."""
    return CampaignStats(**identity, **derive(raw, aov=aov))


def recompute(campaign: CampaignStats, aov: Optional[float] = None, **changes) -> CampaignStats:
    """Return a copy of ``campaign`` with ``changes`` applied and metrics re-derived."""
    updated = campaign.model_copy(update=changes)
    raw = {field: getattr(updated, field) for field in COUNTER_FIELDS}
    # Let derive() recompute frequency from the new impressions/reach.
    return updated.model_copy(update=derive(raw, aov=aov))


def summarize(campaigns: Iterable[CampaignStats], aov: Optional[float] = None) -> dict:
    """
    Aggregate a list of campaigns into portfolio totals.

    Totals are summed and the portfolio ratios re-derived from them. ``avg_roas``
    is the plain mean of per-campaign ROAS, which is the figure the dashboards show.
    """
    campaigns = list(campaigns)
    totals = {field: sum(getattr(c, field) for c in campaigns) for field in COUNTER_FIELDS}
    metrics = derive(totals, aov=aov)
    metrics.pop("last_sync", None)
    metrics["campaign_count"] = len(campaigns)
    metrics["avg_roas"] = round(_ratio(sum(c.roas for c in campaigns), len(campaigns)), 2)
    return metrics
