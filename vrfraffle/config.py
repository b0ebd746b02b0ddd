"""Environment driven raffle configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional, Union

from dotenv import load_dotenv

# Ensure environment variables from .env are loaded when this module is imported.
load_dotenv()

WEI_PER_UNIT = {
    "wei": 1,
    "gwei": 10**9,
    "ether": 10**18,
}


def to_wei(amount: Union[str, int, Decimal], unit: str = "ether") -> int:
    """Convert ``amount`` expressed in ``unit`` into an integer number of wei.

    Raises
    ------
    ValueError
        If the unit is unknown, the amount is not a number, or the result is
        not a whole number of wei.
    """
    try:
        factor = WEI_PER_UNIT[unit]
    except KeyError as exc:
        raise ValueError(f"Unknown unit '{unit}'") from exc
    try:
        value = Decimal(str(amount)) * factor
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount {amount!r}") from exc
    if value != value.to_integral_value():
        raise ValueError(f"{amount} {unit} is not a whole number of wei")
    return int(value)


@dataclass(frozen=True)
class RaffleSettings:
    """Immutable parameters a raffle is created with.

    Attributes
    ----------
    entrance_fee : int
        Minimum payment per entry, in wei.
    interval_seconds : int
        Minimum number of seconds between two draws.
    key_hash : str
        VRF gas lane.
    subscription_id : int
        VRF subscription funding the requests.
    coordinator_address : str
        Only caller allowed to deliver random words.
    request_confirmations, callback_gas_limit, num_words : int
        Request tuning passed through to the coordinator.
    """

    entrance_fee: int
    interval_seconds: int
    key_hash: str
    subscription_id: int
    coordinator_address: str
    request_confirmations: int = 3
    callback_gas_limit: int = 500000
    num_words: int = 1

    def __post_init__(self) -> None:
        if self.entrance_fee <= 0:
            raise ValueError("entrance_fee must be a positive amount")
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds must not be negative")
        if self.num_words < 1:
            raise ValueError("num_words must be at least 1")
        if not self.coordinator_address:
            raise ValueError("coordinator_address is required")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RaffleSettings":
        """Build settings from ``RAFFLE_*`` and ``VRF_*`` environment variables.

        The entrance fee is read in wei from ``RAFFLE_ENTRANCE_FEE``, or in
        ether from ``RAFFLE_ENTRANCE_FEE_ETHER`` when the former is unset.
        """
        env = os.environ if environ is None else environ

        def required(name: str) -> str:
            value = env.get(name)
            if not value:
                raise ValueError(f"Environment variable '{name}' is not set")
            return value

        def entrance_fee() -> int:
            if env.get("RAFFLE_ENTRANCE_FEE"):
                return int(env["RAFFLE_ENTRANCE_FEE"])
            if env.get("RAFFLE_ENTRANCE_FEE_ETHER"):
                return to_wei(env["RAFFLE_ENTRANCE_FEE_ETHER"])
            raise ValueError(
                "Environment variable 'RAFFLE_ENTRANCE_FEE' "
                "(or 'RAFFLE_ENTRANCE_FEE_ETHER') is not set"
            )

        return cls(
            entrance_fee=entrance_fee(),
            interval_seconds=int(required("RAFFLE_INTERVAL")),
            key_hash=required("VRF_KEY_HASH"),
            subscription_id=int(required("VRF_SUBSCRIPTION_ID")),
            coordinator_address=required("VRF_COORDINATOR_ADDRESS"),
            request_confirmations=int(env.get("VRF_REQUEST_CONFIRMATIONS", "3")),
            callback_gas_limit=int(env.get("VRF_CALLBACK_GAS_LIMIT", "500000")),
            num_words=int(env.get("VRF_NUM_WORDS", "1")),
        )


__all__ = ["RaffleSettings", "WEI_PER_UNIT", "to_wei"]
