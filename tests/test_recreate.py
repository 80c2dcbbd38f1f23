"""Tests for conditional-recreate decisions."""

from __future__ import annotations

import pytest
from azure.core.exceptions import HttpResponseError, ResourceNotFoundError

from provider.errors import InputError
from provider.recreate import (
    NO_DIRECTIVE,
    RECREATE_ATTRIBUTE,
    InvalidPolicyError,
    RecreateDirective,
    RecreatePolicy,
    RemoteKeyState,
    evaluate_diff,
    should_force_recreate,
)


class StubLookup:
    """Counts remote lookups and answers with a fixed state or error."""

    def __init__(
        self,
        state: RemoteKeyState | None = None,
        error: Exception | None = None,
    ) -> None:
        self.state = state or RemoteKeyState(reusable=True, invalid=False)
        self.error = error
        self.calls = 0

    async def __call__(self) -> RemoteKeyState:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.state


class TestRecreatePolicy:
    """Tests for policy parsing."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("", RecreatePolicy.UNSET),
            (None, RecreatePolicy.UNSET),
            ("always", RecreatePolicy.ALWAYS),
            ("never", RecreatePolicy.NEVER),
            (RecreatePolicy.NEVER, RecreatePolicy.NEVER),
        ],
    )
    def test_parse_valid(self, value: str | None, expected: RecreatePolicy) -> None:
        """Test supported values parse."""
        assert RecreatePolicy.parse(value) is expected

    @pytest.mark.parametrize("value", ["sometimes", "Always", " never"])
    def test_parse_invalid(self, value: str) -> None:
        """Test unsupported values are input errors naming the value."""
        with pytest.raises(InvalidPolicyError) as exc_info:
            RecreatePolicy.parse(value)
        assert value in str(exc_info.value)
        assert isinstance(exc_info.value, InputError)


class TestShouldForceRecreate:
    """Tests for the pure recreate decision."""

    @pytest.mark.parametrize(
        ("reusable", "policy", "expected"),
        [
            (True, "", True),
            (False, "", False),
            (True, "always", True),
            (False, "always", True),
            (True, "never", False),
            (False, "never", False),
        ],
    )
    def test_decision_table(self, reusable: bool, policy: str, expected: bool) -> None:
        """Test all reusable and policy combinations."""
        assert should_force_recreate(reusable, policy) is expected

    def test_always_ignores_reusable(self) -> None:
        """Test always forces recreation regardless of reusable."""
        assert should_force_recreate(True, RecreatePolicy.ALWAYS)
        assert should_force_recreate(False, RecreatePolicy.ALWAYS)

    def test_never_ignores_reusable(self) -> None:
        """Test never blocks recreation regardless of reusable."""
        assert not should_force_recreate(True, RecreatePolicy.NEVER)
        assert not should_force_recreate(False, RecreatePolicy.NEVER)

    def test_unset_follows_reusable(self) -> None:
        """Test the default policy mirrors reusable."""
        for reusable in (True, False):
            assert should_force_recreate(reusable, "") is reusable

    def test_invalid_policy_raises(self) -> None:
        """Test unsupported policies are rejected."""
        with pytest.raises(InvalidPolicyError):
            should_force_recreate(True, "sometimes")


class TestEvaluateDiff:
    """Tests for the pre-plan hook."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("policy", ["", "always", "never"])
    @pytest.mark.parametrize("reusable", [True, False])
    async def test_unchanged_policy_skips_lookup(self, policy: str, reusable: bool) -> None:
        """Test an unchanged policy never consults the remote."""
        lookup = StubLookup(RemoteKeyState(reusable=reusable, invalid=True))

        directive = await evaluate_diff(policy, policy, reusable, lookup)

        assert directive == NO_DIRECTIVE
        assert lookup.calls == 0

    @pytest.mark.asyncio
    async def test_change_to_never_skips_lookup(self) -> None:
        """Test a change that cannot force recreation never consults the remote."""
        lookup = StubLookup(RemoteKeyState(reusable=True, invalid=True))

        directive = await evaluate_diff("", "never", True, lookup)

        assert directive.force_new is False
        assert lookup.calls == 0

    @pytest.mark.asyncio
    async def test_always_to_never_ignores_missing_key(self) -> None:
        """Test never wins even when the key is gone remotely."""
        lookup = StubLookup(error=ResourceNotFoundError("key not found"))

        directive = await evaluate_diff("always", "never", True, lookup)

        assert directive == NO_DIRECTIVE
        assert lookup.calls == 0

    @pytest.mark.asyncio
    async def test_change_to_unset_single_use_skips_lookup(self) -> None:
        """Test the default policy on a single-use key never consults the remote."""
        lookup = StubLookup(RemoteKeyState(reusable=False, invalid=True))

        directive = await evaluate_diff("always", "", False, lookup)

        assert directive == NO_DIRECTIVE
        assert lookup.calls == 0

    @pytest.mark.asyncio
    async def test_change_to_always_on_invalid_key_forces(self) -> None:
        """Test switching to always on an invalid single-use key forces replacement."""
        lookup = StubLookup(RemoteKeyState(reusable=False, invalid=True))

        directive = await evaluate_diff("", "always", False, lookup)

        assert directive == RecreateDirective(force_new=True, attribute=RECREATE_ATTRIBUTE)
        assert lookup.calls == 1

    @pytest.mark.asyncio
    async def test_change_to_always_on_valid_key_keeps(self) -> None:
        """Test switching to always on a valid key changes nothing."""
        lookup = StubLookup(RemoteKeyState(reusable=False, invalid=False))

        directive = await evaluate_diff("", "always", False, lookup)

        assert directive == NO_DIRECTIVE
        assert lookup.calls == 1

    @pytest.mark.asyncio
    async def test_change_to_unset_reusable_invalid_forces(self) -> None:
        """Test dropping never on an invalid reusable key forces replacement."""
        lookup = StubLookup(RemoteKeyState(reusable=True, invalid=True))

        directive = await evaluate_diff("never", "", True, lookup)

        assert directive.force_new is True
        assert directive.attribute == RECREATE_ATTRIBUTE

    @pytest.mark.asyncio
    async def test_missing_key_forces(self) -> None:
        """Test a key that no longer exists forces replacement."""
        lookup = StubLookup(error=ResourceNotFoundError("key not found"))

        directive = await evaluate_diff("never", "always", True, lookup)

        assert directive.force_new is True
        assert lookup.calls == 1

    @pytest.mark.asyncio
    async def test_other_lookup_errors_propagate(self) -> None:
        """Test transport and server failures are surfaced, not swallowed."""
        error = HttpResponseError(message="internal error")
        lookup = StubLookup(error=error)

        with pytest.raises(HttpResponseError) as exc_info:
            await evaluate_diff("", "always", False, lookup)

        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_invalid_new_policy_raises(self) -> None:
        """Test an unsupported declared policy is rejected before any lookup."""
        lookup = StubLookup()

        with pytest.raises(InvalidPolicyError):
            await evaluate_diff("", "sometimes", True, lookup)

        assert lookup.calls == 0

    @pytest.mark.asyncio
    async def test_none_treated_as_unset(self) -> None:
        """Test a missing prior policy equals the default policy."""
        lookup = StubLookup()

        directive = await evaluate_diff(None, "", True, lookup)

        assert directive == NO_DIRECTIVE
        assert lookup.calls == 0


class TestRecreateDirective:
    """Tests for RecreateDirective."""

    def test_default_is_no_op(self) -> None:
        assert NO_DIRECTIVE.force_new is False
        assert NO_DIRECTIVE.attribute is None

    def test_force_names_attribute(self) -> None:
        directive = RecreateDirective.force()
        assert directive.force_new is True
        assert directive.attribute == "recreate_if_invalid"
