from dataclasses import dataclass

from barbaros.config.settings import VISITS_PER_REWARD


@dataclass(frozen=True)
class LoyaltyStatus:
    visit_count: int
    visits_per_reward: int
    visits_toward_next: int
    visits_remaining: int
    progress_percent: int
    rewards_earned: int
    rewards_redeemed: int

    @property
    def rewards_available(self):
        return max(self.rewards_earned - self.rewards_redeemed, 0)

    @property
    def reward_ready(self):
        return self.rewards_available > 0


def compute_status(client: dict, visits_per_reward: int = VISITS_PER_REWARD) -> LoyaltyStatus:
    """
    Progress of a client on the visit-count reward cycle.

    A visit count that is an exact multiple of visits_per_reward shows a full
    card (the reward was just earned) rather than an empty one.
    """
    visit_count = client.get('visit_count', 0)
    toward = visit_count % visits_per_reward
    if visit_count and toward == 0:
        toward = visits_per_reward
    return LoyaltyStatus(
        visit_count=visit_count,
        visits_per_reward=visits_per_reward,
        visits_toward_next=toward,
        visits_remaining=visits_per_reward - toward,
        progress_percent=min(round(toward / visits_per_reward * 100), 100),
        rewards_earned=client.get('rewards_earned', 0),
        rewards_redeemed=client.get('rewards_redeemed', 0),
    )


def unlocked_rewards(rewards, visit_count: int):
    """
    Active ladder rungs whose visit requirement has been reached.
    """
    return [r for r in rewards if r.get('is_active', True) and r['visits_required'] <= visit_count]


def next_reward(rewards, visit_count: int):
    """
    The closest active rung still ahead of visit_count, or None.
    """
    ahead = [r for r in rewards if r.get('is_active', True) and r['visits_required'] > visit_count]
    return min(ahead, key=lambda r: r['visits_required'], default=None)
