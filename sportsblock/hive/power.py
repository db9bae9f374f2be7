"""
HIVE Power / VESTS conversion

Staked HIVE is held on-chain as VESTS. The exchange rate comes from the
dynamic global properties: total_vesting_fund_hive / total_vesting_shares.
Operation builders return unsigned payloads for the wallet to sign.
"""

from __future__ import annotations

import math
import re
from typing import Any

from sportsblock.hive.utils import parse_asset

ACCOUNT_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9.-]{2,15}$")

MIN_POWER_UP_HIVE = 0.001
POWER_DOWN_WEEKS = 13
# to_withdraw / withdrawn are integers in millionths of a VEST
VESTS_PRECISION = 1_000_000


class PowerOperationError(ValueError):
    """Invalid input for a power up/down operation."""


def is_valid_account_name(account: str | None) -> bool:
    return bool(account) and bool(ACCOUNT_NAME_PATTERN.match(account))


def vests_to_hive(vests: float, total_vesting_shares: float, total_vesting_fund_hive: float) -> float:
    if total_vesting_shares == 0:
        return 0.0
    return vests / total_vesting_shares * total_vesting_fund_hive


def hive_to_vests(hive: float, total_vesting_shares: float, total_vesting_fund_hive: float) -> float:
    if total_vesting_fund_hive == 0:
        return 0.0
    return hive / total_vesting_fund_hive * total_vesting_shares


def global_totals(global_props: dict[str, Any]) -> tuple[float, float]:
    """(total_vesting_shares, total_vesting_fund_hive) from get_dynamic_global_properties."""
    return (
        parse_asset(global_props.get("total_vesting_shares")).amount,
        parse_asset(global_props.get("total_vesting_fund_hive")).amount,
    )


def power_status(account: dict[str, Any], global_props: dict[str, Any]) -> dict[str, Any]:
    """
    Summarise an account's liquid and staked HIVE and any running power down.

    Args:
        account: One entry from condenser_api.get_accounts
        global_props: condenser_api.get_dynamic_global_properties

    Returns:
        camelCase dict ready to serve; amounts are strings with fixed precision
    """
    total_shares, total_fund = global_totals(global_props)

    def to_hp(vests: float) -> float:
        return vests_to_hive(vests, total_shares, total_fund)

    balance = parse_asset(account.get("balance")).amount
    own_vests = parse_asset(account.get("vesting_shares")).amount
    delegated_vests = parse_asset(account.get("delegated_vesting_shares")).amount
    received_vests = parse_asset(account.get("received_vesting_shares")).amount
    weekly_vests = parse_asset(account.get("vesting_withdraw_rate")).amount
    effective_vests = own_vests + received_vests - delegated_vests

    to_withdraw = int(account.get("to_withdraw") or 0)
    withdrawn = int(account.get("withdrawn") or 0)

    power_down: dict[str, Any] = {"isActive": False}
    if to_withdraw > 0 and to_withdraw > withdrawn:
        remaining_vests = (to_withdraw - withdrawn) / VESTS_PRECISION
        weeks_remaining = math.ceil(remaining_vests / weekly_vests) if weekly_vests > 0 else 0
        power_down = {
            "isActive": True,
            "weeklyAmount": f"{to_hp(weekly_vests):.3f}",
            "weeklyVests": f"{weekly_vests:.6f}",
            "remainingAmount": f"{to_hp(remaining_vests):.3f}",
            "remainingVests": f"{remaining_vests:.6f}",
            "weeksRemaining": weeks_remaining,
            "nextWithdrawal": account.get("next_vesting_withdrawal"),
        }

    return {
        "account": account.get("name"),
        "liquidHive": f"{balance:.3f}",
        "hivePower": f"{to_hp(own_vests):.3f}",
        "effectiveHivePower": f"{to_hp(effective_vests):.3f}",
        "delegatedOut": f"{to_hp(delegated_vests):.3f}",
        "delegatedIn": f"{to_hp(received_vests):.3f}",
        "vestingShares": f"{own_vests:.6f}",
        "powerDown": power_down,
        "conversionRate": {
            "vestsPerHive": f"{hive_to_vests(1, total_shares, total_fund):.6f}",
            "hivePerVest": f"{vests_to_hive(1, total_shares, total_fund):.6f}",
        },
    }


# =============================================================================
# Unsigned operations
# =============================================================================


def build_power_up(from_account: str, to_account: str | None, amount: float) -> dict[str, str]:
    """transfer_to_vesting payload."""
    if amount <= 0:
        raise PowerOperationError("Power up amount must be greater than 0")
    if amount < MIN_POWER_UP_HIVE:
        raise PowerOperationError(f"Minimum power up amount is {MIN_POWER_UP_HIVE} HIVE")
    return {"from": from_account, "to": to_account or from_account, "amount": f"{amount:.3f} HIVE"}


def build_power_down(account: str, vests: float) -> dict[str, str]:
    """withdraw_vesting payload; spreads over POWER_DOWN_WEEKS weekly withdrawals."""
    if vests < 0:
        raise PowerOperationError("Power down amount cannot be negative")
    return {"account": account, "vesting_shares": f"{vests:.6f} VESTS"}


def build_cancel_power_down(account: str) -> dict[str, str]:
    return build_power_down(account, 0)


def build_delegation(delegator: str, delegatee: str, vests: float) -> dict[str, str]:
    """delegate_vesting_shares payload; zero VESTS removes the delegation."""
    if delegator == delegatee:
        raise PowerOperationError("Cannot delegate to yourself")
    if vests < 0:
        raise PowerOperationError("Amount must be a non-negative number (0 to remove delegation)")
    return {"delegator": delegator, "delegatee": delegatee, "vesting_shares": f"{vests:.6f} VESTS"}


def build_claim_rewards(account: str, reward_hive: str, reward_hbd: str, reward_vests: str) -> dict[str, str]:
    """claim_reward_balance payload; balances pass through as on-chain asset strings."""
    if not any(parse_asset(value).amount > 0 for value in (reward_hive, reward_hbd, reward_vests)):
        raise PowerOperationError("No pending rewards to claim")
    return {
        "account": account,
        "reward_hive": reward_hive,
        "reward_hbd": reward_hbd,
        "reward_vests": reward_vests,
    }
