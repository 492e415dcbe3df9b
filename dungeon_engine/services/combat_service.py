"""Turn-based battle resolution.

Responsibilities:
    * Pick an encounter from the monster catalog for the current floor.
    * Scale catalog stats by floor and rarity.
    * Run the attack/counter-attack loop until someone drops or the turn
      limit is reached.
    * Compute exp and gold rewards for a victory.

Design notes:
    - Each turn draws from its own generator (``{user_id}:battle:{counter}:{turn}``);
      the player's swing consumes rolls first, then the monster's.
    - Damage is ``max(1, atk - def)`` before crit/variance and at least 1
      after, so every battle terminates within ``turn_limit`` turns.
    - Monsters have no luck stat; their crit chance is the base chance.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from ..catalog import CatalogMonster, MonsterRegistry
from ..config import BattleConfig, GoldConfig
from ..errors import CatalogError
from ..logs.extras import MonsterDetail
from ..rng import RandomSource

VICTORY = "VICTORY"
DEFEAT = "DEFEAT"

CAUSE_CRITICAL_HIT = "CRITICAL_HIT"
CAUSE_PLAYER_DEFEATED = "PLAYER_DEFEATED"
CAUSE_TURN_LIMIT = "TURN_LIMIT"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class CombatantStats:
    hp: int
    max_hp: int
    atk: int
    defense: int
    luck: int = 0


@dataclass(frozen=True)
class MonsterSnapshot:
    code: str
    name: str
    hp: int
    atk: int
    defense: int
    sprite_id: str
    rarity: str = "normal"
    drop_table_id: Optional[str] = None

    @property
    def is_elite(self) -> bool:
        return self.rarity == "elite"

    @property
    def stat_total(self) -> int:
        return self.hp + self.atk + self.defense

    def to_detail(self) -> MonsterDetail:
        return MonsterDetail(
            code=self.code,
            name=self.name,
            hp=self.hp,
            atk=self.atk,
            defense=self.defense,
            sprite_id=self.sprite_id,
            rarity=self.rarity if self.is_elite else None,
        )


@dataclass(frozen=True)
class BattleOutcome:
    result: str
    cause: Optional[str]
    turns: int
    damage_dealt: int
    damage_taken: int
    hp_delta: int
    player_hp: int
    monster_hp: int

    @property
    def victory(self) -> bool:
        return self.result == VICTORY


def pick_monster(registry: MonsterRegistry, rng: RandomSource, elite_rate: float, floor: int) -> CatalogMonster:
    """Choose the encounter for ``floor``.

    Rolls the elite gate first (only when the catalog has elites), then picks
    uniformly among the weakest slice of the pool. The slice grows by 5% of
    the pool per floor, between 10% and 100%.
    """
    monsters = registry.list()
    elites = [m for m in monsters if m.rarity == "elite"]
    normals = [m for m in monsters if m.rarity == "normal"]
    use_elite = bool(elites) and rng.next() < elite_rate
    pool = elites if use_elite else normals
    if not pool:
        raise CatalogError("monster catalog has no candidates for this encounter")
    ordered = sorted(pool, key=lambda m: m.hp)
    fraction = min(1.0, max(0.1, floor * 0.05))
    size = max(1, round_half_up(len(ordered) * fraction))
    candidates = ordered[:size]
    index = min(len(candidates) - 1, math.floor(rng.next() * len(candidates)))
    return candidates[index]


def scale_monster(monster: CatalogMonster, floor: int, config: BattleConfig, default_drop_table_id: Optional[str] = None) -> MonsterSnapshot:
    floor_mult = 1 + (max(1, floor) - 1) * config.floor_scale_rate
    rarity_mult = config.elite_multiplier if monster.is_elite else 1.0

    def scale(value: int) -> int:
        return round_half_up(value * floor_mult * rarity_mult)

    return MonsterSnapshot(
        code=monster.code,
        name=monster.name,
        hp=scale(monster.hp),
        atk=scale(monster.atk),
        defense=scale(monster.defense),
        sprite_id=monster.sprite_id,
        rarity=monster.rarity,
        drop_table_id=monster.drop_table_id or default_drop_table_id,
    )


def crit_chance(luck: int, config: BattleConfig) -> float:
    return min(config.crit_cap, max(0.0, config.crit_base + luck * config.crit_luck_factor))


def compute_damage(atk: int, defense: int, luck: int, rng: RandomSource, config: BattleConfig) -> Tuple[int, bool]:
    """Return ``(damage, crit)`` for one swing."""
    base = max(1, atk - defense)
    crit = rng.next() < crit_chance(luck, config)
    factor = 1.0
    if config.damage_variance > 0:
        factor = 1 + (rng.next() * 2 - 1) * config.damage_variance
    raw = base * factor * (config.crit_multiplier if crit else 1)
    return max(1, round_half_up(raw)), crit


def resolve_battle(
    player: CombatantStats,
    monster: MonsterSnapshot,
    rng_for_turn: Callable[[int], RandomSource],
    config: BattleConfig,
    hp_floor: int = 0,
) -> BattleOutcome:
    start_hp = max(hp_floor, min(player.hp, player.max_hp))
    player_hp = start_hp
    monster_hp = monster.hp
    result, cause = VICTORY, None
    turn = 0
    dealt = taken = 0

    while player_hp > hp_floor and monster_hp > 0 and turn < config.turn_limit:
        turn += 1
        rng = rng_for_turn(turn)

        damage, crit = compute_damage(player.atk, monster.defense, player.luck, rng, config)
        monster_hp -= damage
        dealt += damage
        if monster_hp <= 0:
            result, cause = VICTORY, (CAUSE_CRITICAL_HIT if crit else None)
            break

        damage, _ = compute_damage(monster.atk, player.defense, 0, rng, config)
        player_hp = max(hp_floor, player_hp - damage)
        taken += damage
        if player_hp <= hp_floor:
            result, cause = DEFEAT, CAUSE_PLAYER_DEFEATED
            break

    if monster_hp > 0 and player_hp > hp_floor and turn >= config.turn_limit:
        result, cause = DEFEAT, CAUSE_TURN_LIMIT

    return BattleOutcome(
        result=result,
        cause=cause,
        turns=turn,
        damage_dealt=dealt,
        damage_taken=taken,
        hp_delta=player_hp - start_hp,
        player_hp=player_hp,
        monster_hp=max(0, monster_hp),
    )


def compute_exp_reward(monster: MonsterSnapshot, config: BattleConfig) -> int:
    bonus = config.elite_exp_bonus if monster.is_elite else 1.0
    return max(1, round_half_up(monster.stat_total / 3 * bonus))


def compute_gold_reward(floor: int, monster: MonsterSnapshot, gold: GoldConfig) -> int:
    raw = gold.base + floor * gold.floor_factor + monster.stat_total / gold.stat_div
    return max(0, round_half_up(raw))


__all__ = [
    "VICTORY",
    "DEFEAT",
    "CombatantStats",
    "MonsterSnapshot",
    "BattleOutcome",
    "pick_monster",
    "scale_monster",
    "crit_chance",
    "compute_damage",
    "resolve_battle",
    "compute_exp_reward",
    "compute_gold_reward",
]
