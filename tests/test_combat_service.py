"""Battle loop, damage, encounter choice and reward math."""

import pytest

from dungeon_engine.catalog import build_catalog, parse_monster
from dungeon_engine.config import BattleConfig
from dungeon_engine.services.combat_service import (
    CAUSE_CRITICAL_HIT,
    CAUSE_PLAYER_DEFEATED,
    CAUSE_TURN_LIMIT,
    DEFEAT,
    VICTORY,
    CombatantStats,
    compute_damage,
    compute_exp_reward,
    compute_gold_reward,
    crit_chance,
    pick_monster,
    resolve_battle,
    scale_monster,
)
from tests.factories import ANCIENT_DRAGON, GIANT_RAT, GOBLIN_ELITE, TOPAZ_TABLE, FixedRandom

CFG = BattleConfig()


def _no_crit(turn):
    return FixedRandom(default=0.99)


def test_damage_is_never_below_one():
    for atk, defense in [(0, 0), (1, 50), (3, 3), (10, 2)]:
        dmg, crit = compute_damage(atk, defense, 0, FixedRandom(default=0.99), CFG)
        assert dmg >= 1
        assert crit is False
    assert compute_damage(10, 2, 0, FixedRandom(default=0.99), CFG)[0] == 8


def test_critical_hit_multiplies_damage():
    dmg, crit = compute_damage(5, 1, 0, FixedRandom([0.0]), CFG)
    assert crit is True
    assert dmg == 8


def test_variance_consumes_extra_roll_only_when_enabled():
    rng = FixedRandom([0.99, 0.5])
    compute_damage(5, 1, 0, rng, CFG)
    assert rng.calls == 1
    varied = BattleConfig(damage_variance=0.5)
    rng = FixedRandom([0.99, 1.0])
    dmg, _ = compute_damage(4, 0, 0, rng, varied)
    assert rng.calls == 2
    assert dmg == 6


def test_crit_chance_grows_with_luck_and_caps():
    assert crit_chance(0, CFG) == pytest.approx(0.05)
    assert crit_chance(10, CFG) == pytest.approx(0.15)
    assert crit_chance(1000, CFG) == CFG.crit_cap


def test_victory_after_alternating_turns():
    monster = scale_monster(parse_monster(GIANT_RAT), 1, CFG)
    player = CombatantStats(hp=10, max_hp=10, atk=3, defense=1)
    out = resolve_battle(player, monster, _no_crit, CFG)
    assert out.result == VICTORY and out.victory
    assert out.cause is None
    assert out.turns == 3
    assert out.damage_dealt == 9
    assert out.damage_taken == 2
    assert out.hp_delta == -2
    assert out.player_hp == 8
    assert out.monster_hp == 0


def test_critical_finish_sets_cause():
    monster = scale_monster(parse_monster(GIANT_RAT), 1, CFG)
    player = CombatantStats(hp=10, max_hp=10, atk=3, defense=1)
    scripted = {2: [0.0]}
    out = resolve_battle(player, monster, lambda turn: FixedRandom(scripted.get(turn, ())), CFG)
    assert out.result == VICTORY
    assert out.cause == CAUSE_CRITICAL_HIT
    assert out.turns == 2


def test_player_defeat_floors_hp():
    monster = scale_monster(parse_monster(ANCIENT_DRAGON), 1, CFG)
    player = CombatantStats(hp=5, max_hp=10, atk=3, defense=1)
    out = resolve_battle(player, monster, _no_crit, CFG)
    assert out.result == DEFEAT
    assert out.cause == CAUSE_PLAYER_DEFEATED
    assert out.player_hp == 0
    assert out.turns == 1


def test_turn_limit_is_a_defeat():
    monster = scale_monster(parse_monster(ANCIENT_DRAGON), 1, CFG)
    player = CombatantStats(hp=100, max_hp=100, atk=2, defense=60)
    out = resolve_battle(player, monster, _no_crit, CFG)
    assert out.result == DEFEAT
    assert out.cause == CAUSE_TURN_LIMIT
    assert out.turns == CFG.turn_limit
    assert out.player_hp == 70
    assert out.monster_hp == 80


def test_one_generator_per_turn():
    seen = []

    def rng_for_turn(turn):
        seen.append(turn)
        return FixedRandom(default=0.99)

    monster = scale_monster(parse_monster(GIANT_RAT), 1, CFG)
    resolve_battle(CombatantStats(hp=10, max_hp=10, atk=3, defense=1), monster, rng_for_turn, CFG)
    assert seen == [1, 2, 3]


def test_scaling_by_floor_and_rarity():
    elite = scale_monster(parse_monster(GOBLIN_ELITE), 1, CFG)
    assert (elite.hp, elite.atk, elite.defense) == (13, 4, 1)
    assert elite.is_elite
    deep = scale_monster(parse_monster(ANCIENT_DRAGON), 51, CFG)
    assert deep.hp == 165
    assert deep.to_detail().rarity is None


def test_scale_uses_default_drop_table():
    monster = parse_monster({k: v for k, v in GIANT_RAT.items() if k != "dropTableId"})
    assert scale_monster(monster, 1, CFG, "drops-default").drop_table_id == "drops-default"


def test_pick_monster_elite_gate():
    registry = build_catalog([GIANT_RAT, GOBLIN_ELITE], [TOPAZ_TABLE]).monsters
    assert pick_monster(registry, FixedRandom([0.0, 0.0]), CFG.elite_rate, 1).code == GOBLIN_ELITE["code"]
    assert pick_monster(registry, FixedRandom([0.5, 0.0]), CFG.elite_rate, 1).code == GIANT_RAT["code"]


def test_pick_monster_pool_widens_with_floor():
    registry = build_catalog([GIANT_RAT, ANCIENT_DRAGON], [TOPAZ_TABLE]).monsters
    assert pick_monster(registry, FixedRandom([0.99]), CFG.elite_rate, 1).code == GIANT_RAT["code"]
    assert pick_monster(registry, FixedRandom([0.99]), CFG.elite_rate, 20).code == ANCIENT_DRAGON["code"]


def test_rewards():
    rat = scale_monster(parse_monster(GIANT_RAT), 1, CFG)
    assert compute_exp_reward(rat, CFG) == 3
    assert compute_gold_reward(1, rat, CFG.gold) == 2
    elite = scale_monster(parse_monster(GOBLIN_ELITE), 1, CFG)
    assert compute_exp_reward(elite, CFG) == 9
