"""
Chat command classification - pure text -> command mapping
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from zyra.services.phone import normalize_phone

VERIFICATION_CODE_PATTERN = re.compile(r"[0-9]{6}")
DEPOSIT_AMOUNT_PATTERN = re.compile(r"[0-9]+")
SEND_AMOUNT_PATTERN = re.compile(r"[0-9]+(\.[0-9]{1,2})?")

DEPOSIT_USAGE = "deposit <amount>"
SEND_USAGE = "send <amount> to <phone>"


@dataclass(frozen=True)
class VerifyCommand:
    code: str
    name: str = "verify"


@dataclass(frozen=True)
class DepositCommand:
    """amount is None for a bare "deposit" (the user is asked for an amount)"""
    amount: Optional[int] = None
    name: str = "deposit"


@dataclass(frozen=True)
class SendCommand:
    """amount and recipient are both None for a bare "send" (usage reply)"""
    amount: Optional[Decimal] = None
    recipient: Optional[str] = None
    name: str = "send"


@dataclass(frozen=True)
class BalanceCommand:
    name: str = "balance"


@dataclass(frozen=True)
class UnrecognizedCommand:
    text: str
    name: str = "unrecognized"


@dataclass(frozen=True)
class MalformedCommand:
    """A recognised keyword whose arguments did not parse"""
    keyword: str
    reason: str
    name: str = "malformed"


Command = Union[
    VerifyCommand,
    DepositCommand,
    SendCommand,
    BalanceCommand,
    UnrecognizedCommand,
    MalformedCommand,
]


def _parse_deposit(tokens) -> Union[DepositCommand, MalformedCommand]:
    if len(tokens) < 2 or not DEPOSIT_AMOUNT_PATTERN.fullmatch(tokens[1]):
        return MalformedCommand("deposit", f"Invalid deposit amount. Use '{DEPOSIT_USAGE}'")
    amount = int(tokens[1])
    if amount <= 0:
        return MalformedCommand("deposit", "Deposit amount must be greater than 0")
    return DepositCommand(amount=amount)


def _parse_send(tokens) -> Union[SendCommand, MalformedCommand]:
    usage = f"Invalid send command. Use '{SEND_USAGE}'"
    if len(tokens) < 4 or not SEND_AMOUNT_PATTERN.fullmatch(tokens[1]):
        return MalformedCommand("send", usage)
    try:
        amount = Decimal(tokens[1])
    except InvalidOperation:
        return MalformedCommand("send", usage)
    if amount <= 0:
        return MalformedCommand("send", "Send amount must be greater than 0")
    # tokens[2] is the literal "to" and is not validated
    return SendCommand(amount=amount, recipient=normalize_phone(tokens[3]))


def classify(text: Optional[str]) -> Command:
    """
    Classify one inbound chat message. First match wins:

    1. exactly six digits            -> VerifyCommand
    2. starts with "deposit"         -> DepositCommand / MalformedCommand
    3. starts with "send"            -> SendCommand / MalformedCommand
    4. starts with "balance"         -> BalanceCommand
    5. anything else                 -> UnrecognizedCommand

    Keywords are matched case-insensitively. Interactive button replies must be
    resolved to their button id before calling this.
    """
    stripped = (text or "").strip()
    lowered = stripped.lower()

    if VERIFICATION_CODE_PATTERN.fullmatch(stripped):
        return VerifyCommand(code=stripped)

    if lowered.startswith("deposit"):
        if lowered == "deposit":
            return DepositCommand()
        return _parse_deposit(stripped.split())

    if lowered.startswith("send"):
        if lowered == "send":
            return SendCommand()
        return _parse_send(stripped.split())

    if lowered.startswith("balance"):
        return BalanceCommand()

    return UnrecognizedCommand(text=stripped)
