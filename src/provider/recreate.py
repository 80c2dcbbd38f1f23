"""Conditional-recreate decisions for tailnet keys.

A key becomes invalid once it is expired, revoked or deleted. Whether an
invalid key should be replaced depends on the user's ``recreate_if_invalid``
policy and on whether the key is reusable. By default reusable keys are
recreated, while invalid single-use keys are assumed to have been consumed
and are left alone, so that resources depending on them are not replaced
for no reason.

The decision is recomputed on every plan from current remote state and is
never persisted.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from azure.core.exceptions import ResourceNotFoundError

from .errors import InputError

logger = logging.getLogger(__name__)

# Attribute flagged for forced replacement when an invalid key must be recreated
RECREATE_ATTRIBUTE = "recreate_if_invalid"


class InvalidPolicyError(InputError):
    """Raised when recreate_if_invalid holds an unsupported value."""

    pass


class RecreatePolicy(str, Enum):
    """User-declared recreate_if_invalid policy."""

    UNSET = ""
    ALWAYS = "always"
    NEVER = "never"

    @classmethod
    def parse(cls, value: str | RecreatePolicy | None) -> RecreatePolicy:
        """Validate a declared policy value.

        Raises:
            InvalidPolicyError: If the value is not "", "always" or "never".
        """
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.UNSET
        try:
            return cls(value)
        except ValueError as e:
            raise InvalidPolicyError(f"unexpected value of recreate_if_invalid: {value}") from e


@dataclass(frozen=True)
class RemoteKeyState:
    """Key attributes that drive the recreate decision."""

    reusable: bool
    invalid: bool
    recreate_policy: RecreatePolicy = RecreatePolicy.UNSET


@dataclass(frozen=True)
class RecreateDirective:
    """Outcome of a pre-plan recreate check."""

    force_new: bool = False
    attribute: str | None = None

    @classmethod
    def force(cls, attribute: str = RECREATE_ATTRIBUTE) -> RecreateDirective:
        return cls(force_new=True, attribute=attribute)


NO_DIRECTIVE = RecreateDirective()

RemoteLookup = Callable[[], Awaitable[RemoteKeyState]]


def should_force_recreate(reusable: bool, policy: str | RecreatePolicy | None) -> bool:
    """Decide whether an invalid key should be recreated."""
    policy = RecreatePolicy.parse(policy)
    if policy is RecreatePolicy.ALWAYS:
        return True
    if policy is RecreatePolicy.NEVER:
        return False
    return reusable


async def evaluate_diff(
    old_policy: str | RecreatePolicy | None,
    new_policy: str | RecreatePolicy | None,
    reusable: bool,
    remote_lookup: RemoteLookup,
) -> RecreateDirective:
    """Force replacement when a policy change makes an invalid key due for recreation.

    The remote lookup only runs when the policy changed and the new policy
    can force a recreate.

    Args:
        old_policy: recreate_if_invalid value in the prior state.
        new_policy: recreate_if_invalid value in the declared config.
        reusable: Declared reusable flag.
        remote_lookup: Fetches the key's current remote state; raises
            ResourceNotFoundError when the key no longer exists.

    Returns:
        A directive flagging recreate_if_invalid for replacement, or NO_DIRECTIVE.

    Raises:
        InvalidPolicyError: If either policy value is unsupported.
        AzureError: If the remote lookup fails for a reason other than not-found.
    """
    old = RecreatePolicy.parse(old_policy)
    new = RecreatePolicy.parse(new_policy)
    if old == new:
        return NO_DIRECTIVE

    if not should_force_recreate(reusable, new):
        return NO_DIRECTIVE

    try:
        state = await remote_lookup()
    except ResourceNotFoundError:
        logger.info(
            "Key no longer exists, forcing replacement",
            extra={"attribute": RECREATE_ATTRIBUTE, "policy": new.value},
        )
        return RecreateDirective.force()

    if state.invalid:
        logger.info(
            "Key is invalid, forcing replacement",
            extra={"attribute": RECREATE_ATTRIBUTE, "policy": new.value},
        )
        return RecreateDirective.force()

    return NO_DIRECTIVE
