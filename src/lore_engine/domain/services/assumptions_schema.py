# src/lore_engine/domain/services/assumptions_schema.py
# Copyright (c) Lore.
# SPDX-License-Identifier: MIT
"""Assumption schema registry.

Purpose:
    Hold the canonical catalog of known assumption metrics, grouped into
    categories, each with a label, unit, default value, editing bounds, and
    optional research-benchmark aliases. The registry is the lowest tier of
    the layered assumption model and the source of category/unit inference
    for overrides.

Layer:
    domain

Notes:
    - This module is pure domain logic:
        * No logging.
        * No persistence or transport concerns.
    - Declaration order is significant. Categories and the metrics inside
      them iterate in the order they are declared so that grouped displays
      stay stable.
    - Unknown keys are an expected condition, not an error: lookups return
      ``None`` and ``get_default_value`` returns ``0.0``.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from types import MappingProxyType
from typing import Final

from lore_engine.domain.entities.assumptions import MetricDefinition, MetricKey
from lore_engine.domain.enums.assumptions import MetricCategory, MetricUnit
from lore_engine.domain.exceptions.assumptions import AssumptionsSchemaError

__all__ = [
    "CATEGORY_LABELS",
    "CFO_ASSUMPTIONS_CATALOG",
    "NO_SCHEMA_DEFAULT",
    "SchemaRegistry",
    "get_default_registry",
]

#: Sentinel returned by ``get_default_value`` for unregistered keys. Callers
#: must treat it as "no schema default", not as a configured assumption.
NO_SCHEMA_DEFAULT: Final[float] = 0.0

CATEGORY_LABELS: Final[Mapping[str, str]] = MappingProxyType(
    {
        MetricCategory.GROWTH.value: "Growth & Acquisition",
        MetricCategory.SUBSCRIPTIONS.value: "Subscriptions",
        MetricCategory.ADVERTISING.value: "Advertising",
        MetricCategory.IMPRESSIONS.value: "Impressions & Views",
        MetricCategory.EVENTS.value: "Events & Awards",
        MetricCategory.GENERAL.value: "General",
    }
)


class SchemaRegistry:
    """Immutable, ordered catalog of metric definitions.

    The registry is built once from a ``category -> definitions`` mapping and
    never changes afterwards. Keys must be unique across all categories.
    """

    __slots__ = ("_by_key", "_by_category")

    def __init__(self, catalog: Mapping[str, Sequence[MetricDefinition]]) -> None:
        """Build the registry.

        Args:
            catalog:
                Mapping of category name to its metric definitions, both in
                display order. Each definition's ``category`` must match the
                category it is declared under.

        Raises:
            AssumptionsSchemaError: If a key is declared twice or a definition
                is filed under the wrong category.
        """
        by_key: dict[str, MetricDefinition] = {}
        by_category: dict[str, tuple[MetricDefinition, ...]] = {}

        for category, definitions in catalog.items():
            for definition in definitions:
                if definition.category != category:
                    raise AssumptionsSchemaError(
                        "Metric definition declared under a different category.",
                        details={
                            "metric_key": definition.key,
                            "declared_under": category,
                            "category": definition.category,
                        },
                    )
                if definition.key in by_key:
                    raise AssumptionsSchemaError(
                        "Duplicate metric key in assumptions schema.",
                        details={
                            "metric_key": definition.key,
                            "categories": [by_key[definition.key].category, category],
                        },
                    )
                by_key[definition.key] = definition
            by_category[category] = tuple(definitions)

        self._by_key: Mapping[str, MetricDefinition] = MappingProxyType(by_key)
        self._by_category: Mapping[str, tuple[MetricDefinition, ...]] = MappingProxyType(
            by_category
        )

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __iter__(self) -> Iterator[MetricDefinition]:
        return iter(self._by_key.values())

    def __len__(self) -> int:
        return len(self._by_key)

    def get_definition(self, key: str) -> MetricDefinition | None:
        """Return the definition for ``key``, or None when unregistered."""
        return self._by_key.get(key)

    def get_default_value(self, key: str) -> float:
        """Return the schema default for ``key``.

        Returns ``0.0`` for unregistered keys. A registered default of exactly
        zero is therefore indistinguishable from "no default" for callers that
        only look at this value.
        """
        definition = self._by_key.get(key)
        return definition.default_value if definition is not None else NO_SCHEMA_DEFAULT

    def get_category(self, key: str) -> str | None:
        """Return the registry category for ``key``, or None when unregistered."""
        definition = self._by_key.get(key)
        return definition.category if definition is not None else None

    def get_unit(self, key: str) -> str | None:
        """Return the registry unit for ``key``, or None when unregistered."""
        definition = self._by_key.get(key)
        return definition.unit if definition is not None else None

    def list_by_category(self, category: str) -> tuple[MetricDefinition, ...]:
        """Return the definitions of ``category`` in declaration order.

        Unknown categories yield an empty tuple.
        """
        return self._by_category.get(category, ())

    def categories(self) -> tuple[str, ...]:
        """Return registered categories in declaration order."""
        return tuple(self._by_category)

    def all_metric_keys(self) -> tuple[MetricKey, ...]:
        """Return every registered metric key in declaration order."""
        return tuple(definition.key for definition in self._by_key.values())


# --------------------------------------------------------------------------- #
# CFO assumptions catalog                                                      #
# --------------------------------------------------------------------------- #


def _metric(
    category: MetricCategory,
    key: str,
    label: str,
    unit: MetricUnit,
    default: float,
    *,
    benchmark: str | tuple[str, str] | None = None,
    min_value: float | None = None,
    max_value: float | None = None,
    step: float | None = None,
    description: str | None = None,
) -> MetricDefinition:
    if benchmark is None:
        benchmark_keys: tuple[str, ...] = ()
    elif isinstance(benchmark, str):
        benchmark_keys = (benchmark,)
    else:
        benchmark_keys = benchmark
    return MetricDefinition(
        key=MetricKey(key),
        category=category.value,
        unit=unit.value,
        label=label,
        default_value=default,
        description=description,
        min_value=min_value,
        max_value=max_value,
        step=step,
        benchmark_keys=benchmark_keys,
    )


_G = MetricCategory.GROWTH
_S = MetricCategory.SUBSCRIPTIONS
_A = MetricCategory.ADVERTISING
_I = MetricCategory.IMPRESSIONS
_E = MetricCategory.EVENTS

CFO_ASSUMPTIONS_CATALOG: Final[Mapping[str, tuple[MetricDefinition, ...]]] = MappingProxyType(
    {
        # ------------------------------------------------------------------ #
        # Growth & acquisition                                               #
        # ------------------------------------------------------------------ #
        _G.value: (
            _metric(_G, "monthly_creator_growth_rate", "Monthly Creator Growth Rate",
                    MetricUnit.PERCENT, 4, benchmark="creator_growth_rate",
                    min_value=1, max_value=20, step=1,
                    description="Expected month-over-month creator growth"),
            _metric(_G, "monthly_advertiser_growth_rate", "Monthly Advertiser Growth Rate",
                    MetricUnit.PERCENT, 3, benchmark="advertiser_growth_rate",
                    min_value=1, max_value=15, step=1,
                    description="Expected month-over-month advertiser growth"),
            _metric(_G, "creator_monthly_churn_rate", "Creator Monthly Churn",
                    MetricUnit.PERCENT, 5, benchmark="creator_monthly_churn",
                    min_value=1, max_value=20, step=0.5,
                    description="Percent of paying creators who cancel each month"),
            _metric(_G, "advertiser_monthly_churn_rate", "Advertiser Monthly Churn",
                    MetricUnit.PERCENT, 8, benchmark="advertiser_monthly_churn",
                    min_value=1, max_value=25, step=1,
                    description="Percent of advertisers who leave each month"),
            _metric(_G, "creator_cac_paid", "Creator CAC (Paid)",
                    MetricUnit.USD, 45, benchmark="creator_cac_paid",
                    min_value=5, max_value=500, step=5,
                    description="Average cost to acquire one paying creator via paid channels"),
            _metric(_G, "creator_cac_organic", "Creator CAC (Organic)",
                    MetricUnit.USD, 15, benchmark="creator_cac_organic",
                    min_value=0, max_value=100, step=5,
                    description="Blended cost to acquire creators via organic/referral channels"),
        ),
        # ------------------------------------------------------------------ #
        # Subscriptions                                                      #
        # ------------------------------------------------------------------ #
        _S.value: (
            _metric(_S, "free_to_pro_conversion_rate", "Free → Pro Conversion Rate",
                    MetricUnit.PERCENT, 5, benchmark="subscription_free_conversion",
                    min_value=0, max_value=20, step=1,
                    description="Monthly rate at which free users upgrade to Pro"),
            _metric(_S, "pro_arpu", "Pro Tier ARPU",
                    MetricUnit.USD, 29, benchmark="creator_subscription_arpu_pro",
                    min_value=9, max_value=299, step=1,
                    description="Average revenue per Pro subscriber"),
            _metric(_S, "business_arpu", "Business Tier ARPU",
                    MetricUnit.USD, 79, benchmark="creator_subscription_arpu_business",
                    min_value=29, max_value=149, step=5,
                    description="Average revenue per Business subscriber"),
            _metric(_S, "enterprise_arpu", "Enterprise Tier ARPU",
                    MetricUnit.USD, 299, benchmark="creator_subscription_arpu_enterprise",
                    min_value=99, max_value=499, step=10,
                    description="Average revenue per Enterprise subscriber"),
            _metric(_S, "subscription_churn_rate", "Subscription Monthly Churn",
                    MetricUnit.PERCENT, 4, benchmark="subscription_monthly_churn",
                    min_value=1, max_value=15, step=0.5,
                    description="Monthly churn rate for paid subscriptions"),
        ),
        # ------------------------------------------------------------------ #
        # Advertising                                                        #
        # ------------------------------------------------------------------ #
        _A.value: (
            _metric(_A, "audio_cpm_hostread", "Host-Read Audio CPM",
                    MetricUnit.USD, 22,
                    benchmark=("audio_hostread_preroll_cpm_low", "audio_hostread_preroll_cpm_high"),
                    min_value=15, max_value=40, step=1,
                    description="CPM for host-read podcast ads"),
            _metric(_A, "audio_cpm_programmatic", "Programmatic Audio CPM",
                    MetricUnit.USD, 12,
                    benchmark=("audio_programmatic_cpm_low", "audio_programmatic_cpm_high"),
                    min_value=5, max_value=20, step=0.5,
                    description="CPM for programmatic audio ads"),
            _metric(_A, "video_cpm", "Video Mid-roll CPM",
                    MetricUnit.USD, 20,
                    benchmark=("video_midroll_cpm_low", "video_midroll_cpm_high"),
                    min_value=10, max_value=40, step=1,
                    description="CPM for video mid-roll ads"),
            _metric(_A, "newsletter_cpm", "Newsletter CPM",
                    MetricUnit.USD, 35, benchmark="newsletter_cpm_avg",
                    min_value=20, max_value=60, step=1,
                    description="CPM for newsletter/email ads"),
            _metric(_A, "display_cpm", "Display CPM",
                    MetricUnit.USD, 5, benchmark="display_cpm_avg",
                    min_value=2, max_value=15, step=0.5,
                    description="CPM for display/banner ads"),
            _metric(_A, "audio_fill_rate", "Audio Fill Rate",
                    MetricUnit.PERCENT, 65, benchmark="audio_fill_rate",
                    min_value=30, max_value=95, step=5,
                    description="Percentage of audio ad inventory that is filled"),
            _metric(_A, "video_fill_rate", "Video Fill Rate",
                    MetricUnit.PERCENT, 55, benchmark="video_fill_rate",
                    min_value=30, max_value=95, step=5,
                    description="Percentage of video ad inventory that is filled"),
            _metric(_A, "newsletter_fill_rate", "Newsletter Fill Rate",
                    MetricUnit.PERCENT, 80, benchmark="newsletter_fill_rate",
                    min_value=30, max_value=95, step=5,
                    description="Percentage of newsletter ad slots that are filled"),
            _metric(_A, "display_fill_rate", "Display Fill Rate",
                    MetricUnit.PERCENT, 70, benchmark="display_fill_rate",
                    min_value=30, max_value=95, step=5,
                    description="Percentage of display ad inventory that is filled"),
            _metric(_A, "hostread_platform_share", "Platform Share - Host-Read Ads",
                    MetricUnit.PERCENT, 30, benchmark="hostread_platform_share",
                    min_value=10, max_value=50, step=5,
                    description="Platform revenue share for host-read ads"),
            _metric(_A, "programmatic_platform_share", "Platform Share - Programmatic Ads",
                    MetricUnit.PERCENT, 40, benchmark="programmatic_platform_share",
                    min_value=20, max_value=60, step=5,
                    description="Platform revenue share for programmatic ads"),
            _metric(_A, "brand_deal_platform_share", "Platform Share - Brand Deals",
                    MetricUnit.PERCENT, 20, benchmark="brand_deal_platform_share",
                    min_value=10, max_value=40, step=5,
                    description="Platform revenue share for brand deals"),
            _metric(_A, "ad_slots_audio", "Audio Ad Slots per Episode",
                    MetricUnit.SLOTS, 3, benchmark="audio_ad_slots_per_episode",
                    min_value=1, max_value=6, step=1,
                    description="Number of ad slots per audio episode"),
            _metric(_A, "ad_slots_video", "Video Ad Slots per Episode",
                    MetricUnit.SLOTS, 2, benchmark="video_ad_slots_per_video",
                    min_value=1, max_value=5, step=1,
                    description="Number of ad slots per video"),
        ),
        # ------------------------------------------------------------------ #
        # Impressions & views                                                #
        # ------------------------------------------------------------------ #
        _I.value: (
            _metric(_I, "podcaster_small", "Small Podcaster Monthly Impressions",
                    MetricUnit.IMPRESSIONS, 5000,
                    benchmark=("podcaster_small_monthly_impressions_low",
                               "podcaster_small_monthly_impressions_high"),
                    min_value=1000, max_value=20000, step=1000,
                    description="Average monthly impressions for small podcasters"),
            _metric(_I, "podcaster_mid", "Mid Podcaster Monthly Impressions",
                    MetricUnit.IMPRESSIONS, 25000,
                    benchmark=("podcaster_mid_monthly_impressions_low",
                               "podcaster_mid_monthly_impressions_high"),
                    min_value=10000, max_value=100000, step=5000,
                    description="Average monthly impressions for mid-tier podcasters"),
            _metric(_I, "podcaster_large", "Large Podcaster Monthly Impressions",
                    MetricUnit.IMPRESSIONS, 250000,
                    benchmark=("podcaster_large_monthly_impressions_low",
                               "podcaster_large_monthly_impressions_high"),
                    min_value=100000, max_value=1000000, step=50000,
                    description="Average monthly impressions for large podcasters"),
            _metric(_I, "video_small", "Small Video Creator Monthly Views",
                    MetricUnit.VIEWS, 10000,
                    benchmark=("video_creator_small_monthly_views_low",
                               "video_creator_small_monthly_views_high"),
                    min_value=1000, max_value=50000, step=1000,
                    description="Average monthly views for small video creators"),
            _metric(_I, "video_mid", "Mid Video Creator Monthly Views",
                    MetricUnit.VIEWS, 100000,
                    benchmark=("video_creator_mid_monthly_views_low",
                               "video_creator_mid_monthly_views_high"),
                    min_value=50000, max_value=500000, step=10000,
                    description="Average monthly views for mid-tier video creators"),
            _metric(_I, "video_large", "Large Video Creator Monthly Views",
                    MetricUnit.VIEWS, 1000000,
                    benchmark=("video_creator_large_monthly_views_low",
                               "video_creator_large_monthly_views_high"),
                    min_value=500000, max_value=5000000, step=100000,
                    description="Average monthly views for large video creators"),
        ),
        # ------------------------------------------------------------------ #
        # Events & awards                                                    #
        # ------------------------------------------------------------------ #
        _E.value: (
            _metric(_E, "events_per_year", "Number of Events per Year",
                    MetricUnit.COUNT, 12,
                    min_value=0, max_value=200, step=1,
                    description="Total events hosted annually"),
            _metric(_E, "avg_ticket_price", "Average Ticket Price",
                    MetricUnit.USD, 45, benchmark="avg_event_ticket_price",
                    min_value=10, max_value=250, step=5,
                    description="Average ticket price per event"),
            _metric(_E, "avg_event_sponsorship", "Average Event Sponsorship",
                    MetricUnit.USD, 2500, benchmark="avg_award_sponsorship_value",
                    min_value=500, max_value=50000, step=500,
                    description="Average sponsorship revenue per event"),
        ),
    }
)

_DEFAULT_REGISTRY: SchemaRegistry | None = None


def get_default_registry() -> SchemaRegistry:
    """Return the process-wide registry built from the CFO catalog."""
    global _DEFAULT_REGISTRY
    if _DEFAULT_REGISTRY is None:
        _DEFAULT_REGISTRY = SchemaRegistry(CFO_ASSUMPTIONS_CATALOG)
    return _DEFAULT_REGISTRY
