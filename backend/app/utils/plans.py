"""
Plan Rules — Derive session duration and bandwidth class from a package label.

Package labels are free text chosen on the captive portal
(e.g. "3-Hour Unlimited", "Vybz 7-Hour"), so both rules are substring matches.
"""

DEFAULT_DURATION_HOURS = 1

# Checked in order; first match wins.
DURATION_TIERS = (
    ("3-Hour", 3),
    ("7-Hour", 7),
    ("14-Hour", 14),
    ("24-Hour", 24),
)

UNLIMITED_DURATION_HOURS = 24

BANDWIDTH_UNLIMITED = "unlimited"
BANDWIDTH_3MBPS = "3mbps"
BANDWIDTH_DEFAULT = "default"


def duration_hours(plan_description: str | None) -> int:
    """Hours of access bought by a plan.

    An explicit hour tier in the label wins ("3-Hour Unlimited" is 3 hours of
    unthrottled access). A bare "Unlimited" plan lasts 24 hours, never forever.
    """
    desc = plan_description or ""
    for label, tier_hours in DURATION_TIERS:
        if label in desc:
            return tier_hours
    if "unlimited" in desc.lower():
        return UNLIMITED_DURATION_HOURS
    return DEFAULT_DURATION_HOURS


def bandwidth_class(plan_description: str | None) -> str:
    desc = (plan_description or "").lower()
    if "unlimited" in desc:
        return BANDWIDTH_UNLIMITED
    if "3mbps" in desc or "vybz" in desc:
        return BANDWIDTH_3MBPS
    return BANDWIDTH_DEFAULT
