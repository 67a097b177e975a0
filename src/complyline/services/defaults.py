# Copyright 2024-2025 David Gordon Nix
# SPDX-License-Identifier: Apache-2.0

"""
Configuration defaults for obligations with missing or partial frequency configuration.

One `DefaultsPolicy` is shared by the generator and every repair or backfill
tool, so the fallback for a given obligation is decided in exactly one place.
Explicitly configured fields always win; defaults only fill the gaps.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from pydantic import Field, field_validator

from ..core.primitives.enums import FrequencyEnum, MonthEnum
from ..core.primitives.frequency import (
    AnyFrequencyConfig,
    FrequencyConfigBase,
    MonthlyConfig,
    QuarterlyConfig,
    YearlyConfig,
    normalize_config_mapping,
    parse_frequency_config,
)
from ..core.primitives.model import Model
from ..exceptions import FrequencyConfigError

logger = logging.getLogger(__name__)


def _yearly(month: MonthEnum, day: int) -> YearlyConfig:
    return YearlyConfig(months=(month,), day=day)


class DefaultsPolicy(Model):
    """
    Fallback configurations per frequency, with per-obligation overrides.

    Named overrides are matched on the trimmed, case-insensitive obligation
    name and take precedence over the frequency-wide default.

    Example:
        ```python
        DEFAULT_POLICY.resolve("Yearly", {}, "Income Tax Return")
        # YearlyConfig(months=(MonthEnum.JULY,), day=31)
        ```
    """

    monthly: Optional[MonthlyConfig] = Field(
        default_factory=lambda: MonthlyConfig(day=1, time="9:00 AM")
    )
    quarterly: Optional[QuarterlyConfig] = Field(
        default_factory=lambda: QuarterlyConfig(
            months=(MonthEnum.APRIL, MonthEnum.JULY, MonthEnum.OCTOBER, MonthEnum.JANUARY),
            day=1,
        )
    )
    yearly: Optional[YearlyConfig] = Field(
        default_factory=lambda: _yearly(MonthEnum.MARCH, 31)
    )
    named: Dict[str, AnyFrequencyConfig] = Field(
        default_factory=lambda: {
            "income tax return": _yearly(MonthEnum.JULY, 31),
            "statutory audit": _yearly(MonthEnum.SEPTEMBER, 30),
            "tax audit": _yearly(MonthEnum.SEPTEMBER, 30),
            "legal litigation": _yearly(MonthEnum.MARCH, 31),
        }
    )
    jurisdiction_keywords: Tuple[str, ...] = Field(
        default=("gst",),
        description="Name fragments marking obligations that recur once per state registration.",
    )

    @field_validator("named")
    @classmethod
    def _normalize_names(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        return {name.strip().lower(): config for name, config in v.items()}

    def default_for(
        self, frequency: FrequencyEnum | str, obligation_name: Optional[str] = None
    ) -> Optional[FrequencyConfigBase]:
        """The fallback configuration for this obligation, if the policy has one."""
        frequency = FrequencyEnum(frequency)
        if obligation_name:
            override = self.named.get(obligation_name.strip().lower())
            if override is not None and override.frequency == frequency:
                return override
        return {
            FrequencyEnum.MONTHLY: self.monthly,
            FrequencyEnum.QUARTERLY: self.quarterly,
            FrequencyEnum.YEARLY: self.yearly,
        }.get(frequency)

    def resolve(
        self,
        frequency: FrequencyEnum | str,
        config: Any,
        obligation_name: Optional[str] = None,
    ) -> FrequencyConfigBase:
        """
        Return the usable configuration for an obligation.

        A valid explicit configuration is returned as-is. Otherwise the
        explicit fields are laid over the policy default and validated again.

        Raises:
            FrequencyConfigError: The configuration is unusable and the policy
                has no default that completes it.
        """
        try:
            return parse_frequency_config(frequency, config)
        except FrequencyConfigError as error:
            if config is not None and not isinstance(config, Mapping):
                # A typed config of another frequency is wrong data, not a gap
                raise
            fallback = self.default_for(frequency, obligation_name) if _is_known(frequency) else None
            if fallback is None:
                raise
            explicit = (
                normalize_config_mapping(FrequencyEnum(frequency), config)
                if config is not None
                else {}
            )
            merged = {**fallback.model_dump(exclude_none=True), **explicit}
            try:
                resolved = parse_frequency_config(frequency, merged)
            except FrequencyConfigError:
                raise error
            logger.warning(
                f"Using default {fallback.frequency.value} configuration for "
                f"{obligation_name or 'unnamed obligation'!r}: {error}"
            )
            return resolved

    def is_jurisdiction_scoped(
        self,
        obligation_name: Optional[str],
        explicit: Optional[bool] = None,
        field_names: Iterable[str] = (),
    ) -> bool:
        """
        Whether an obligation recurs once per state registration.

        An explicit flag wins; otherwise the obligation name or any of its
        form field names must mention one of `jurisdiction_keywords`.
        """
        if explicit is not None:
            return explicit
        names = [obligation_name or "", *field_names]
        return any(
            keyword in name.lower() for name in names for keyword in self.jurisdiction_keywords
        )


def _is_known(frequency: Any) -> bool:
    try:
        FrequencyEnum(frequency)
    except ValueError:
        return False
    return True


DEFAULT_POLICY = DefaultsPolicy()


def is_jurisdiction_scoped(
    obligation_name: Optional[str],
    explicit: Optional[bool] = None,
    field_names: Iterable[str] = (),
) -> bool:
    return DEFAULT_POLICY.is_jurisdiction_scoped(obligation_name, explicit, field_names)
