"""Dungeon event engine: spends one action point and resolves one event.

The engine is a pure step function. Given a state snapshot and an action
counter it returns the next state (version + 1) and the ordered log entries
describing every sub-step; persisting both is the store's job.

Entry order for one resolution:

    <EVENT> STARTED            ap spent (BATTLE also snapshots monster/player)
    LEVEL_UP COMPLETED * n     one per exp threshold crossed
    <EVENT> COMPLETED          event delta plus floor progress
    DEATH, REVIVE              hp reached 0
    ACQUIRE_ITEM COMPLETED     all drops of the event
    MOVE STARTED, COMPLETED    floor progress reached the maximum

Random draws come from independent generators keyed by user id and action
counter (see ``rng.build_seed``), so a resolution replays exactly.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, List, Mapping, Optional, Union

from ..catalog import Catalog, check_default_drop_table
from ..config import EVENT_TYPES, EventConfig, EventWeights
from ..errors import InsufficientActionPoints
from ..logging_utils import get_logger
from ..logs.deltas import (
    AcquireItemDelta,
    DeathDelta,
    InventoryDelta,
    LevelUpDelta,
    MoveDelta,
    ProgressDelta,
    ReviveDelta,
    RewardsDelta,
    StatsDelta,
    delta_for_event,
)
from ..logs.extras import AcquireItemExtra, BattleExtra, DeathExtra, DropDetail, LevelUpExtra, PlayerDetail
from ..models.log_entry import CurrentAction, DungeonLogEntry, LogAction, LogStatus, category_for
from ..models.state import DungeonState, utcnow
from ..rng import SeededRandomFactory, build_seed
from .combat_service import (
    CAUSE_PLAYER_DEFEATED,
    CAUSE_TURN_LIMIT,
    BattleOutcome,
    CombatantStats,
    compute_exp_reward,
    compute_gold_reward,
    pick_monster,
    resolve_battle,
    scale_monster,
)
from .loot_service import DropResult, passes_drop_gate, roll_drops, to_inventory_adds
from .progress_service import apply_exp, apply_progress_delta, exp_to_level, rest_heal_amount

log = get_logger("dungeon.events")

MOVE = "MOVE"

_CURRENT_ACTION = {
    "BATTLE": CurrentAction.BATTLE,
    "TREASURE": CurrentAction.TREASURE,
    "REST": CurrentAction.REST,
    "TRAP": CurrentAction.TRAP,
    MOVE: CurrentAction.EXPLORING,
}

CAUSE_TRAP_DAMAGE = "TRAP_DAMAGE"


@dataclass(frozen=True)
class EventResolution:
    next_state: DungeonState
    entries: List[DungeonLogEntry]
    selected_event: str
    forced_move: bool
    drops: Optional[DropResult] = None
    battle: Optional[BattleOutcome] = None


@dataclass
class _Stub:
    action: LogAction
    status: LogStatus
    floor: int
    delta: object = None
    extra: object = None


@dataclass
class _Outcome:
    """What an event handler did before progress, leveling and death are applied."""

    state: DungeonState
    stats: Optional[StatsDelta] = None
    rewards: Optional[RewardsDelta] = None
    extra: object = None
    started_extra: object = None
    progress_increment: int = 0
    exp_gained: int = 0
    death_cause: Optional[str] = None
    death_handled_by: Optional[str] = None
    drops: Optional[DropResult] = None
    battle: Optional[BattleOutcome] = None


def _change(before: int, after: int) -> Optional[int]:
    return after - before if after != before else None


class DungeonEventEngine:
    """Resolve dungeon actions against injected catalogs and configuration."""

    def __init__(
        self,
        catalog: Catalog,
        config: Optional[EventConfig] = None,
        rng_factory=None,
        clock: Callable = utcnow,
    ):
        self.catalog = catalog
        self.config = config or EventConfig()
        check_default_drop_table(catalog, self.config.default_drop_table_id)
        self.rng_factory = rng_factory or SeededRandomFactory()
        self.clock = clock

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------
    def select_event(
        self,
        state: DungeonState,
        rng_value: float,
        weights: Optional[Union[EventWeights, Mapping[str, float]]] = None,
    ) -> str:
        if state.floor_progress >= self.config.progress.max_progress:
            return MOVE
        table = weights if weights is not None else self.config.weights
        values = table.as_dict() if isinstance(table, EventWeights) else {k: float(table.get(k, 0)) for k in EVENT_TYPES}
        total = sum(values.values())
        if total <= 0:
            return "BATTLE"
        pick = rng_value * total
        cumulative = 0.0
        for name in EVENT_TYPES:
            cumulative += values[name]
            if pick < cumulative:
                return name
        return "BATTLE"

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------
    def resolve_next_action(
        self,
        state: DungeonState,
        action_counter: int,
        weights: Optional[Union[EventWeights, Mapping[str, float]]] = None,
    ) -> EventResolution:
        ap_cost = self.config.ap_cost
        if ap_cost <= 0:
            raise ValueError("ap_cost must be at least 1")
        if state.ap < ap_cost:
            raise InsufficientActionPoints(state.ap, ap_cost)
        state.check_invariants()

        uid = state.user_id
        rng_value = self.rng_factory.create(build_seed(uid, "event", action_counter)).next()
        event = self.select_event(state, rng_value, weights)
        log.debug(event="event_selected", user_id=uid, counter=action_counter, selected=event, roll=round(rng_value, 6))

        now = self.clock()
        working = replace(
            state,
            ap=state.ap - ap_cost,
            current_action=_CURRENT_ACTION[event],
            current_action_started_at=now,
        )
        ap_stats = StatsDelta(ap=-ap_cost)
        stubs: List[_Stub] = []

        if event == MOVE:
            stubs.append(_Stub(LogAction.MOVE, LogStatus.STARTED, state.floor, MoveDelta(stats=ap_stats)))
            working = self._move(working, stubs)
            return self._finish(state, working, stubs, action_counter, event, forced_move=False, now=now)

        handler = getattr(self, f"_resolve_{event.lower()}")
        outcome: _Outcome = handler(working, action_counter)
        action = LogAction(event)
        stubs.append(_Stub(action, LogStatus.STARTED, state.floor, delta_for_event(event, stats=ap_stats), outcome.started_extra))
        working = outcome.state

        if outcome.exp_gained:
            working = self._apply_levels(working, outcome.exp_gained, stubs)

        progress = apply_progress_delta(
            working.floor_progress, outcome.progress_increment, self.config.progress.max_progress
        )
        working = replace(working, floor_progress=progress.floor_progress)
        progress_delta = None
        if progress.delta:
            progress_delta = ProgressDelta(
                previous_progress=progress.previous,
                floor_progress=progress.floor_progress,
                delta=progress.delta,
            )
        stubs.append(
            _Stub(
                action,
                LogStatus.COMPLETED,
                working.floor,
                delta_for_event(event, stats=outcome.stats, rewards=outcome.rewards, progress=progress_delta),
                outcome.extra,
            )
        )

        died = outcome.death_cause is not None
        if died:
            working = self._die_and_revive(working, outcome.death_cause, stubs, handled_by=outcome.death_handled_by)

        if outcome.drops:
            stubs.append(
                _Stub(
                    LogAction.ACQUIRE_ITEM,
                    LogStatus.COMPLETED,
                    working.floor,
                    AcquireItemDelta(InventoryDelta(added=to_inventory_adds(outcome.drops, self.catalog.items))),
                    AcquireItemExtra(
                        source=event,
                        drop=DropDetail(
                            table_id=outcome.drops.table_id,
                            is_elite=outcome.drops.is_elite,
                            items=outcome.drops.as_quantities(),
                        ),
                    ),
                )
            )

        forced = progress.forced_advance and not died
        if forced:
            stubs.append(_Stub(LogAction.MOVE, LogStatus.STARTED, working.floor))
            working = self._move(working, stubs)

        return self._finish(
            state,
            working,
            stubs,
            action_counter,
            event,
            forced_move=forced,
            now=now,
            drops=outcome.drops or None,
            battle=outcome.battle,
        )

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------
    def _resolve_rest(self, state: DungeonState, counter: int) -> _Outcome:
        rest = self.config.rest
        hp = min(state.max_hp, state.hp + rest_heal_amount(state.max_hp, rest.heal_ratio, rest.min_heal))
        return _Outcome(
            state=replace(state, hp=hp),
            stats=StatsDelta(hp=hp - state.hp),
            progress_increment=self.config.progress.base_increment,
        )

    def _resolve_trap(self, state: DungeonState, counter: int) -> _Outcome:
        hp = max(0, state.hp - self.config.trap.damage)
        return _Outcome(
            state=replace(state, hp=hp),
            stats=StatsDelta(hp=hp - state.hp),
            progress_increment=self.config.progress.base_increment,
            death_cause=CAUSE_TRAP_DAMAGE if hp == 0 else None,
        )

    def _resolve_treasure(self, state: DungeonState, counter: int) -> _Outcome:
        effect = self.config.treasure
        max_hp = state.max_hp
        hp = state.hp + effect.hp + int(max_hp * effect.hp_ratio)
        nxt = replace(
            state,
            hp=min(max_hp, max(0, hp)),
            atk=max(0, state.atk + effect.atk),
            defense=max(0, state.defense + effect.defense),
            luck=max(0, state.luck + effect.luck),
            gold=max(0, state.gold + effect.gold),
        )
        stats = StatsDelta(
            hp=_change(state.hp, nxt.hp),
            atk=_change(state.atk, nxt.atk),
            defense=_change(state.defense, nxt.defense),
            luck=_change(state.luck, nxt.luck),
        )
        gold = nxt.gold - state.gold
        return _Outcome(
            state=nxt,
            stats=None if stats.is_empty() else stats,
            rewards=RewardsDelta(gold=gold) if gold else None,
            progress_increment=self.config.progress.base_increment,
        )

    def _resolve_battle(self, state: DungeonState, counter: int) -> _Outcome:
        battle_cfg = self.config.battle
        uid = state.user_id
        create = self.rng_factory.create

        picked = pick_monster(
            self.catalog.monsters,
            create(build_seed(uid, "monster", counter)),
            battle_cfg.elite_rate,
            state.floor,
        )
        monster = scale_monster(picked, state.floor, battle_cfg, self.config.default_drop_table_id)
        player = CombatantStats(hp=state.hp, max_hp=state.max_hp, atk=state.atk, defense=state.defense, luck=state.luck)
        outcome = resolve_battle(player, monster, lambda turn: create(build_seed(uid, "battle", counter, turn)), battle_cfg)

        exp = gold = 0
        drops = None
        if outcome.victory:
            exp = compute_exp_reward(monster, battle_cfg)
            gold = compute_gold_reward(state.floor, monster, battle_cfg.gold)
            drop_rng = create(build_seed(uid, "drop", counter))
            if passes_drop_gate(drop_rng, battle_cfg.drop_chance, monster.is_elite, battle_cfg.elite_drop_multiplier):
                drops = roll_drops(self.catalog.drop_tables.get(monster.drop_table_id), monster.is_elite, drop_rng)

        nxt = replace(state, hp=outcome.player_hp, gold=state.gold + gold)
        stats = StatsDelta(hp=_change(state.hp, nxt.hp), exp=exp or None)
        rewards = RewardsDelta(gold=gold or None, items=drops.as_quantities() if drops else ())
        # TURN_LIMIT keeps the remaining hp and still earns battle progress.
        survived = outcome.cause == CAUSE_TURN_LIMIT
        defeated = outcome.cause == CAUSE_PLAYER_DEFEATED
        detail = monster.to_detail()
        log.debug(
            event="battle_resolved",
            user_id=uid,
            counter=counter,
            monster=monster.code,
            result=outcome.result,
            cause=outcome.cause,
            turns=outcome.turns,
        )
        return _Outcome(
            state=nxt,
            stats=None if stats.is_empty() else stats,
            rewards=None if rewards.is_empty() else rewards,
            started_extra=BattleExtra(monster=detail, player=self._player_detail(state)),
            extra=BattleExtra(
                monster=detail,
                player=self._player_detail(nxt, exp=state.exp + exp),
                result=outcome.result,
                cause=outcome.cause,
                exp_gained=exp,
                turns=outcome.turns,
                damage_dealt=outcome.damage_dealt,
                damage_taken=outcome.damage_taken,
            ),
            progress_increment=self.config.progress.battle_increment if outcome.victory or survived else 0,
            exp_gained=exp,
            death_cause=CAUSE_PLAYER_DEFEATED if defeated else None,
            death_handled_by=monster.code if defeated else None,
            drops=drops,
            battle=outcome,
        )

    # ------------------------------------------------------------------
    # Shared sub-steps
    # ------------------------------------------------------------------
    def _player_detail(self, state: DungeonState, exp: Optional[int] = None) -> PlayerDetail:
        return PlayerDetail(
            hp=state.hp,
            max_hp=state.max_hp,
            atk=state.atk,
            defense=state.defense,
            luck=state.luck,
            level=state.level,
            exp=state.exp if exp is None else exp,
            exp_to_level=exp_to_level(state.level, self.config.growth.exp_per_level),
        )

    def _apply_levels(self, state: DungeonState, gained: int, stubs: List[_Stub]) -> DungeonState:
        uid = state.user_id
        result = apply_exp(
            state.level,
            state.exp,
            gained,
            self.config.growth,
            lambda level: self.rng_factory.create(build_seed(uid, "level", level)),
        )
        working = state
        for gain in result.gains:
            bonus_attr = "defense" if gain.bonus_stat == "def" else gain.bonus_stat
            working = replace(
                working,
                level=gain.current_level,
                max_hp=working.max_hp + gain.max_hp,
                hp=working.hp + gain.hp,
                level_up_points=working.level_up_points + gain.points,
                **{bonus_attr: getattr(working, bonus_attr) + gain.bonus_amount},
            )
            gained_stats = StatsDelta.from_dict(gain.stats_gained())
            stubs.append(
                _Stub(
                    LogAction.LEVEL_UP,
                    LogStatus.COMPLETED,
                    working.floor,
                    LevelUpDelta(stats=replace(gained_stats, level=1)),
                    LevelUpExtra(
                        previous_level=gain.previous_level,
                        current_level=gain.current_level,
                        threshold=gain.threshold,
                        stats_gained=gained_stats,
                    ),
                )
            )
        return replace(working, exp=result.exp)

    def _die_and_revive(
        self, state: DungeonState, cause: str, stubs: List[_Stub], handled_by: Optional[str] = None
    ) -> DungeonState:
        previous = state.floor_progress
        stubs.append(
            _Stub(
                LogAction.DEATH,
                LogStatus.COMPLETED,
                state.floor,
                DeathDelta(
                    stats=StatsDelta(hp=-state.hp if state.hp else None),
                    progress=ProgressDelta(previous_progress=previous, floor_progress=0, delta=-previous),
                ),
                DeathExtra(cause=cause, handled_by=handled_by),
            )
        )
        stubs.append(
            _Stub(LogAction.REVIVE, LogStatus.COMPLETED, state.floor, ReviveDelta(stats=StatsDelta(hp=state.max_hp)))
        )
        log.info(event="player_died", user_id=state.user_id, cause=cause, floor=state.floor)
        return replace(state, hp=state.max_hp, floor_progress=0)

    def _move(self, state: DungeonState, stubs: List[_Stub]) -> DungeonState:
        previous = state.floor_progress
        to_floor = state.floor + 1
        moved = replace(
            state,
            floor=to_floor,
            max_floor=max(state.max_floor, to_floor),
            floor_progress=0,
            current_action=CurrentAction.EXPLORING,
        )
        stubs.append(
            _Stub(
                LogAction.MOVE,
                LogStatus.COMPLETED,
                to_floor,
                MoveDelta(
                    from_floor=state.floor,
                    to_floor=to_floor,
                    previous_progress=previous,
                    progress=ProgressDelta(floor=to_floor, previous_progress=previous, floor_progress=0, delta=-previous),
                ),
            )
        )
        return moved

    def _finish(
        self,
        before: DungeonState,
        working: DungeonState,
        stubs: List[_Stub],
        counter: int,
        event: str,
        forced_move: bool,
        now,
        drops: Optional[DropResult] = None,
        battle: Optional[BattleOutcome] = None,
    ) -> EventResolution:
        final = replace(
            working,
            current_action=CurrentAction.IDLE,
            current_action_started_at=None,
            version=before.version + 1,
            updated_at=now,
        ).check_invariants()
        entries = [
            DungeonLogEntry(
                user_id=before.user_id,
                category=category_for(stub.action),
                action=stub.action,
                status=stub.status,
                floor=stub.floor,
                turn_number=counter,
                state_version_before=before.version,
                state_version_after=final.version if stub.status is LogStatus.COMPLETED else None,
                delta=stub.delta,
                extra=stub.extra,
                created_at=now,
            )
            for stub in stubs
        ]
        return EventResolution(
            next_state=final,
            entries=entries,
            selected_event=event,
            forced_move=forced_move,
            drops=drops,
            battle=battle,
        )


__all__ = ["DungeonEventEngine", "EventResolution", "MOVE"]
