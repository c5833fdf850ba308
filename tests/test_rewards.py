"""Tests for the cooldown gate (daily, work and weekly rewards)."""

import pytest

from guild_ledger.economy import Economy
from guild_ledger.errors import InvalidArgumentError
from guild_ledger.events import EconomyEvents
from guild_ledger.rewards import RewardKind, draw_reward
from guild_ledger.timeparse import DAY_MS, HOUR_MS


class TestClaim:
    @pytest.mark.unit
    @pytest.mark.parametrize("kind", ["daily", "work", "weekly"])
    def test_fresh_member_always_succeeds(self, economy: Economy, kind):
        outcome = economy.rewards.claim(kind, "m1", "g1")

        assert outcome.status is True
        assert outcome.cooldown is None
        assert economy.balance.fetch("m1", "g1") == outcome.reward

    @pytest.mark.unit
    def test_daily_scenario(self, economy: Economy, clock):
        first = economy.rewards.daily("M1", "G1")

        assert first.status is True
        assert first.reward == 100
        assert economy.balance.fetch("M1", "G1") == 100

        clock.advance(1)
        second = economy.rewards.daily("M1", "G1")

        assert second.status is False
        assert second.reward is None
        assert second.cooldown is not None
        assert second.cooldown.time.days == 0
        assert second.cooldown.time.hours == 23
        assert second.cooldown.pretty == "24h"
        assert economy.balance.fetch("M1", "G1") == 100

    @pytest.mark.unit
    def test_repeat_before_duration_changes_nothing(self, economy: Economy, clock):
        economy.rewards.work("m1", "g1")
        before = economy.store.load()
        clock.advance(HOUR_MS - 1)

        outcome = economy.rewards.work("m1", "g1")

        assert outcome.status is False
        assert economy.rewards.remaining("work", "m1", "g1") == 1
        assert economy.store.load() == before

    @pytest.mark.unit
    def test_claimable_again_after_duration(self, economy: Economy, clock):
        economy.rewards.daily("m1", "g1")
        clock.advance(DAY_MS)

        outcome = economy.rewards.daily("m1", "g1")

        assert outcome.status is True
        assert economy.balance.fetch("m1", "g1") == 200
        assert economy.rewards.get_cooldown("daily", "m1", "g1") == clock.now

    @pytest.mark.unit
    def test_kinds_are_independent(self, economy: Economy):
        economy.rewards.daily("m1", "g1")

        assert economy.rewards.weekly("m1", "g1").status is True

    @pytest.mark.unit
    def test_pretty_remaining(self, economy: Economy, clock):
        economy.rewards.weekly("m1", "g1")
        clock.advance(DAY_MS)

        outcome = economy.rewards.weekly("m1", "g1")

        assert outcome.cooldown.pretty == "6d"
        assert outcome.cooldown.time.days == 6

    @pytest.mark.unit
    def test_credit_and_stamp_in_single_write(
        self, economy: Economy, clock, monkeypatch: pytest.MonkeyPatch
    ):
        writes = []
        original = economy.store._write_locked
        monkeypatch.setattr(
            economy.store,
            "_write_locked",
            lambda doc, op: (writes.append(op), original(doc, op)),
        )

        economy.rewards.daily("m1", "g1")

        assert writes == ["rewards.daily"]
        member = economy.store.load()["g1"]["m1"]
        assert member["money"] == 100
        assert member["dailyCooldown"] == clock.now

    @pytest.mark.unit
    def test_rejects_unknown_kind(self, economy: Economy):
        with pytest.raises(InvalidArgumentError):
            economy.rewards.claim("monthly", "m1", "g1")

    @pytest.mark.unit
    def test_to_dict_shape(self, economy: Economy):
        economy.rewards.daily("m1", "g1")

        data = economy.rewards.daily("m1", "g1").to_dict()

        assert data["type"] == "daily"
        assert data["status"] is False
        assert set(data["cooldown"]["time"]) == {
            "days",
            "hours",
            "minutes",
            "seconds",
            "milliseconds",
        }
        assert data["defaultReward"] == 100


class TestRewardAmounts:
    @pytest.mark.unit
    def test_work_range_uses_inclusive_draw(self, economy: Economy, rng):
        rng.values = [0.999999]

        outcome = economy.rewards.work("m1", "g1")

        assert outcome.reward == 50
        assert outcome.default_reward == [10, 50]

    @pytest.mark.unit
    def test_work_range_lower_bound(self, economy: Economy, rng):
        rng.values = [0.0]

        assert economy.rewards.work("m1", "g1").reward == 10

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("spec", "draw", "expected"),
        [
            (7, 0.5, 7),
            ([7], 0.9, 7),
            ([1, 6], 0.5, 4),
            ([6, 1], 0.0, 1),
            ([6, 1], 0.99, 6),
        ],
    )
    def test_draw_reward(self, spec, draw, expected):
        assert draw_reward(spec, lambda: draw) == expected

    @pytest.mark.unit
    def test_draw_reward_rejects_long_lists(self):
        with pytest.raises(InvalidArgumentError):
            draw_reward([1, 2, 3], lambda: 0.0)

    @pytest.mark.unit
    def test_guild_settings_override_amount_and_cooldown(self, economy: Economy, clock):
        economy.settings.set("g1", "dailyAmount", 500)
        economy.settings.set("g1", "dailyCooldown", HOUR_MS)

        assert economy.rewards.daily("m1", "g1").reward == 500
        clock.advance(HOUR_MS)
        assert economy.rewards.daily("m1", "g1").status is True

        assert economy.rewards.daily("m1", "g2").reward == 100


class TestReceiveAndCooldowns:
    @pytest.mark.unit
    def test_receive_credits_without_cooldown(self, economy: Economy, recorder):
        outcome = economy.rewards.receive(25, "m1", "g1", "gift")

        assert outcome.type == "receive"
        assert outcome.reward == 25
        assert economy.rewards.get_cooldown("daily", "m1", "g1") is None
        assert recorder.events[-1].detail["reason"] == "gift"

    @pytest.mark.unit
    def test_get_cooldowns(self, economy: Economy):
        economy.rewards.work("m1", "g1")

        cooldowns = economy.rewards.get_cooldowns("m1", "g1")

        assert cooldowns["daily"] is None
        assert cooldowns["weekly"] is None
        assert cooldowns["work"].pretty == "1h"

    @pytest.mark.unit
    def test_remaining_zero_for_fresh_member(self, economy: Economy):
        assert economy.rewards.remaining(RewardKind.DAILY, "m1", "g1") == 0


class TestEvents:
    @pytest.mark.unit
    def test_successful_claim_emits_balance_add(self, economy: Economy, recorder):
        economy.rewards.daily("m1", "g1")

        assert recorder.types() == [EconomyEvents.BALANCE_ADD]
        detail = recorder.events[0].detail
        assert detail["reason"] == "claimed the daily reward"
        assert detail["amount"] == 100
        assert detail["balance"] == 100

    @pytest.mark.unit
    def test_locked_claim_emits_nothing(self, economy: Economy, recorder):
        economy.rewards.weekly("m1", "g1")
        economy.rewards.weekly("m1", "g1")

        assert recorder.types() == [EconomyEvents.BALANCE_ADD]

    @pytest.mark.unit
    def test_custom_reason(self, economy: Economy, recorder):
        economy.rewards.work("m1", "g1", "overtime")

        assert recorder.events[0].detail["reason"] == "overtime"
