"""
Sportsblock API - HIVE Power Routes

Reads staking status and builds unsigned power up, power down, delegation
and reward claim operations.
Signing and broadcasting stay with the user's wallet.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Query, Response, status

from sportsblock.api.dependencies import CurrentUserDep, HiveClientDep
from sportsblock.hive.errors import HiveAPIError
from sportsblock.hive.power import (
    POWER_DOWN_WEEKS,
    PowerOperationError,
    build_cancel_power_down,
    build_claim_rewards,
    build_delegation,
    build_power_down,
    build_power_up,
    global_totals,
    hive_to_vests,
    is_valid_account_name,
    power_status,
)
from sportsblock.models.base import SportsblockModel, to_iso, utc_now

logger = structlog.get_logger(__name__)

router = APIRouter()

POWER_CACHE_CONTROL = "public, s-maxage=30, stale-while-revalidate=60"


class PowerOperationRequest(SportsblockModel):
    action: str
    account: str = ""
    amount: float | None = None
    to: str | None = None


class DelegationRequest(SportsblockModel):
    delegator: str = ""
    delegatee: str = ""
    amount: float | None = None


class ClaimRewardsRequest(SportsblockModel):
    account: str = ""


def _bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def _check_own_account(account: str, user, message: str) -> None:
    if account not in (user.hive_username, user.username):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=message)


def _upstream_error(e: HiveAPIError) -> HTTPException:
    logger.warning("hive_power_upstream_failed", error=str(e))
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail="Hive API unavailable, please try again",
    )


@router.get("/power")
async def get_power_status(
    response: Response,
    hive: HiveClientDep,
    account: str | None = Query(default=None),
) -> dict[str, Any]:
    """Liquid HIVE, HIVE Power, delegations and any running power down."""
    if not account:
        raise _bad_request("Account parameter is required")
    if not is_valid_account_name(account):
        raise _bad_request("Invalid account name")

    try:
        account_data, global_props = await asyncio.gather(
            hive.get_account(account),
            hive.get_dynamic_global_properties(),
        )
    except HiveAPIError as e:
        raise _upstream_error(e) from e

    if account_data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")

    summary = power_status(account_data, global_props)
    summary["account"] = account
    summary["timestamp"] = to_iso(utc_now())

    response.headers["Cache-Control"] = POWER_CACHE_CONTROL
    return summary


@router.post("/power")
async def build_power_operation(
    body: PowerOperationRequest,
    user: CurrentUserDep,
    hive: HiveClientDep,
) -> dict[str, Any]:
    """Build an unsigned transfer_to_vesting or withdraw_vesting operation."""
    account = body.account
    if not is_valid_account_name(account):
        raise _bad_request("Valid account is required")
    _check_own_account(account, user, "Cannot build operations for other accounts")

    amount = body.amount or 0.0

    try:
        if body.action == "powerUp":
            operation = build_power_up(account, body.to, amount)
            return {
                "success": True,
                "action": "powerUp",
                "operation": operation,
                "operationType": "transfer_to_vesting",
                "message": f"Power up {amount:.3f} HIVE",
            }

        if body.action == "powerDown":
            if amount <= 0:
                raise PowerOperationError("Valid positive amount is required for power down")
            try:
                global_props = await hive.get_dynamic_global_properties()
            except HiveAPIError as e:
                raise _upstream_error(e) from e
            total_shares, total_fund = global_totals(global_props)
            vests = hive_to_vests(amount, total_shares, total_fund)
            operation = build_power_down(account, vests)
            return {
                "success": True,
                "action": "powerDown",
                "operation": operation,
                "operationType": "withdraw_vesting",
                "hiveAmount": f"{amount:.3f}",
                "vestsAmount": f"{vests:.6f}",
                "message": (
                    f"Start power down of {amount:.3f} HIVE ({vests:.6f} VESTS) "
                    f"over {POWER_DOWN_WEEKS} weeks"
                ),
            }

        if body.action == "cancelPowerDown":
            return {
                "success": True,
                "action": "cancelPowerDown",
                "operation": build_cancel_power_down(account),
                "operationType": "withdraw_vesting",
                "message": "Cancel active power down",
            }
    except PowerOperationError as e:
        raise _bad_request(str(e)) from e

    raise _bad_request("Invalid action. Use: powerUp, powerDown, or cancelPowerDown")


@router.post("/delegate")
async def build_delegation_operation(
    body: DelegationRequest,
    user: CurrentUserDep,
    hive: HiveClientDep,
) -> dict[str, Any]:
    """Build an unsigned delegate_vesting_shares operation; amount is in HP."""
    if not is_valid_account_name(body.delegator):
        raise _bad_request("Valid delegator account is required")
    if not is_valid_account_name(body.delegatee):
        raise _bad_request("Valid delegatee account is required")
    if body.delegator == body.delegatee:
        raise _bad_request("Cannot delegate to yourself")
    _check_own_account(body.delegator, user, "Cannot build delegation operations for other accounts")
    if body.amount is None or body.amount < 0:
        raise _bad_request("Amount must be a non-negative number (0 to remove delegation)")

    try:
        global_props = await hive.get_dynamic_global_properties()
    except HiveAPIError as e:
        raise _upstream_error(e) from e

    amount = body.amount
    total_shares, total_fund = global_totals(global_props)
    vests = hive_to_vests(amount, total_shares, total_fund)
    try:
        operation = build_delegation(body.delegator, body.delegatee, vests)
    except PowerOperationError as e:
        raise _bad_request(str(e)) from e

    if amount > 0:
        message = f"Delegate {amount:.3f} HP ({vests:.6f} VESTS) to @{body.delegatee}"
    else:
        message = f"Remove delegation to @{body.delegatee}"
    return {
        "success": True,
        "operation": operation,
        "operationType": "delegate_vesting_shares",
        "hiveAmount": f"{amount:.3f}",
        "vestsAmount": f"{vests:.6f}",
        "message": message,
    }


@router.post("/claim-rewards")
async def build_claim_rewards_operation(
    body: ClaimRewardsRequest,
    user: CurrentUserDep,
    hive: HiveClientDep,
) -> dict[str, Any]:
    """Build an unsigned claim_reward_balance operation from the account's pending rewards."""
    account = body.account
    if not is_valid_account_name(account):
        raise _bad_request("Valid account is required")
    _check_own_account(account, user, "Cannot claim rewards for other accounts")

    try:
        account_data = await hive.get_account(account)
    except HiveAPIError as e:
        raise _upstream_error(e) from e
    if account_data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")

    rewards = {
        "hive": account_data.get("reward_hive_balance") or "0.000 HIVE",
        "hbd": account_data.get("reward_hbd_balance") or "0.000 HBD",
        "vesting": account_data.get("reward_vesting_balance") or "0.000000 VESTS",
    }
    try:
        operation = build_claim_rewards(account, rewards["hive"], rewards["hbd"], rewards["vesting"])
    except PowerOperationError as e:
        raise _bad_request(str(e)) from e

    logger.info("hive_claim_rewards_built", account=account)
    return {
        "success": True,
        "operation": operation,
        "operationType": "claim_reward_balance",
        "rewards": rewards,
        "message": f"Claim {rewards['hive']}, {rewards['hbd']}, {rewards['vesting']}",
    }
