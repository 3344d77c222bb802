# game.py
# Сердце игры: раунд против врага, карты атаки/защиты, ход врага, апгрейды между раундами.
# Состояние сессии — обычный dict; все переходы мутируют его на месте.

from __future__ import annotations
from typing import Dict, Any, List, Optional, Tuple
import time, uuid, random, copy, math

import content

SAVE_VERSION = 1
LOG_LIMIT = 80


class UnknownUpgrade(ValueError):
    """Апгрейда нет в каталоге."""

# ---- утилиты ----

def now_ts() -> int:
    return int(time.time())

def deep(obj):
    return copy.deepcopy(obj)

def make_uid(prefix="sid") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:10]}"

def seeded_rng(state: Dict[str, Any]) -> random.Random:
    # детерминированный rng через счётчик
    seed = int(state.get("seed", 12345))
    ctr = int(state.get("rng_ctr", 0))
    state["rng_ctr"] = ctr + 1
    mix = (seed ^ (ctr * 0x9E3779B1)) & 0xFFFFFFFF
    return random.Random(mix)

def rng_for(state: Dict[str, Any]) -> random.Random:
    # подсунутый источник (_rng) важнее сидового; в сейв не попадает
    rng = state.get("_rng")
    if rng is not None:
        return rng
    return seeded_rng(state)

def log(state: Dict[str, Any], msg: str):
    state.setdefault("log", [])
    state["log"].append(msg)
    state["log"] = state["log"][-LOG_LIMIT:]  # ограничим историю

# ---- масштабирование врага ----

def enemy_scaling(enemies_defeated: int) -> Dict[str, Any]:
    n = max(0, int(enemies_defeated))
    has_armor = n > 0 and n % 2 == 0
    return {
        "enemy_max_hp": content.ENEMY_BASE_HP + (n // 2) * content.ENEMY_HP_STEP,
        "dmg_bonus": n // 3,
        "armor": {
            "active": has_armor,
            "value": 1 + (n - 2) // 2 if has_armor else 0,
            # у каждого второго бронированного броня не ломается, а вычитается из урона
            "pierce": has_armor and n % 4 == 2,
            "broken": False,
        },
    }

def enemy_damage_range(rnd: Dict[str, Any]) -> List[int]:
    return [content.ENEMY_MIN_DAMAGE, content.ENEMY_MAX_DAMAGE + int(rnd.get("dmg_bonus", 0))]

def armor_state(state: Dict[str, Any]) -> Dict[str, Any]:
    armor = state["round"]["armor"]
    return {
        "active": bool(armor.get("active")),
        "value": int(armor.get("value", 0)),
        "pierce": bool(armor.get("pierce")),
        "broken": bool(armor.get("broken")),
    }

def round_score(state: Dict[str, Any]) -> int:
    return int(state["progress"]["enemies_defeated"])

# ---- состояние ----

def default_state(seed: Optional[int] = None) -> Dict[str, Any]:
    st = {
        "version": SAVE_VERSION,
        "updated_at": now_ts(),
        "screen": "MENU",
        "seed": int(seed) if seed is not None else random.randint(1, 2_000_000_000),
        "rng_ctr": 0,
        "settings": {
            # False: сначала новый раунд, потом апгрейд
            "scale_after_upgrade": False,
        },
        "progress": content.initial_progress(),
        "round": None,
        "meta": {
            "high_score": 0,
            "last_score": None,
        },
        "log": [],
        "ui": {
            "toast": "",
        },
    }
    reset_round(st)
    return st

def pick_enemy(rng: random.Random) -> Dict[str, Any]:
    if not content.ENEMIES:
        return dict(content.DEFAULT_ENEMY)
    return dict(rng.choice(content.ENEMIES))

def deal_hand(rng: random.Random) -> List[str]:
    hand = list(content.STARTING_HAND)
    rng.shuffle(hand)
    return hand

def draw_next_card(rng: random.Random) -> str:
    return "attack" if rng.random() < content.NEXT_CARD_ATTACK_CHANCE else "defense"

def reset_round(state: Dict[str, Any], *, rng: Optional[random.Random] = None) -> None:
    """Новый раунд по текущему прогрессу. Прогресс не трогаем."""
    rng = rng or rng_for(state)
    prog = state["progress"]
    sc = enemy_scaling(prog["enemies_defeated"])
    state["round"] = {
        "player_hp": int(prog["base_max_hp"]),
        "player_def": int(prog["base_defense"]),
        "enemy_hp": sc["enemy_max_hp"],
        "enemy_max_hp": sc["enemy_max_hp"],
        "dmg_bonus": sc["dmg_bonus"],
        "armor": sc["armor"],
        "enemy": pick_enemy(rng),
        "hand": deal_hand(rng),
        "next_card": draw_next_card(rng),
        "over": False,
        "player_dead": False,
        "enemy_turn_pending": False,
        "turn": 0,
    }
    rnd = state["round"]
    lo, hi = enemy_damage_range(rnd)
    log(state, f"Round {prog['enemies_defeated'] + 1}: {rnd['enemy']['name']} ({rnd['enemy_hp']} HP, hits {lo}-{hi}).")
    log(state, f"You: {rnd['player_hp']} HP, {rnd['player_def']} DEF, attack {prog['dmg_min']}-{prog['dmg_max']}, shield {prog['def_min']}-{prog['def_max']}.")
    if rnd["armor"]["active"]:
        log(state, f"Enemy armor: {rnd['armor']['value']}{' (piercing)' if rnd['armor']['pierce'] else ''}.")
    state["updated_at"] = now_ts()

def reset_progression(state: Dict[str, Any], *, rng: Optional[random.Random] = None) -> None:
    """Полный сброс: апгрейды и счётчик врагов — к начальным, затем новый раунд."""
    state["progress"] = content.initial_progress()
    log(state, "Progress reset.")
    reset_round(state, rng=rng)

# ---- броски ----

def roll_player_damage(prog: Dict[str, Any], rng: random.Random) -> Tuple[int, bool]:
    dmg = int(math.floor(rng.uniform(prog["dmg_min"], prog["dmg_max"])))
    if rng.random() < content.PLAYER_CRIT_CHANCE:
        return dmg * content.PLAYER_CRIT_MULT, True
    return dmg, False

def roll_defense_gain(prog: Dict[str, Any], rng: random.Random) -> int:
    roll = rng.randint(0, content.DEFENSE_ROLL_SPREAD - 1)
    return int(math.floor(prog["def_min"])) + roll

def roll_enemy_damage(rnd: Dict[str, Any], rng: random.Random) -> Tuple[int, bool]:
    lo, hi = enemy_damage_range(rnd)
    dmg = rng.randint(lo, hi)
    if rng.random() < content.ENEMY_CRIT_CHANCE:
        return int(math.ceil(dmg * content.ENEMY_CRIT_MULT)), True
    return dmg, False

# ---- удары ----

def strike_enemy(state: Dict[str, Any], damage: int) -> Dict[str, Any]:
    rnd = state["round"]
    armor = rnd["armor"]
    dealt = 0
    broke = False
    if armor["active"]:
        if armor["pierce"]:
            dealt = max(0, damage - int(armor["value"]))
            log(state, f"Armor absorbs {damage - dealt}: {dealt} gets through.")
        else:
            # обычная броня: удар её снимает, урона нет
            armor["active"] = False
            armor["value"] = 0
            armor["broken"] = True
            broke = True
            log(state, "Enemy armor broken!")
    else:
        dealt = damage
    before = int(rnd["enemy_hp"])
    rnd["enemy_hp"] = max(0, before - dealt)
    if rnd["enemy_hp"] <= 0:
        rnd["over"] = True
        log(state, f"{rnd['enemy']['name']} is defeated.")
    return {"damage": before - rnd["enemy_hp"], "armor_broken": broke}

def damage_player(state: Dict[str, Any], damage: int) -> Dict[str, int]:
    rnd = state["round"]
    dmg = max(0, int(damage))
    # сначала защита, остаток — в HP
    blocked = min(int(rnd["player_def"]), dmg)
    rnd["player_def"] -= blocked
    lost = min(int(rnd["player_hp"]), dmg - blocked)
    rnd["player_hp"] -= lost
    if lost > 0 and rnd["player_hp"] <= 0:
        rnd["player_dead"] = True
        rnd["over"] = True
        log(state, "You have died.")
    return {"blocked": blocked, "hp_lost": lost}

# ---- ходы ----

def play_card(state: Dict[str, Any], is_defense: bool, *, defer_enemy: bool = False, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Разыграть карту. defer_enemy=True — ход врага останется ждать enemy_turn()."""
    rnd = state["round"]
    if rnd["over"] or rnd.get("enemy_turn_pending"):
        return {"played": False}

    rng = rng or rng_for(state)
    prog = state["progress"]
    rnd["turn"] += 1
    res: Dict[str, Any] = {
        "played": True,
        "card": "defense" if is_defense else "attack",
        "rolled": 0,
        "damage": 0,
        "defense_gained": 0,
        "crit": False,
        "armor_broken": False,
        "enemy_turn_pending": False,
        "enemy_attack": None,
    }

    if is_defense:
        gain = roll_defense_gain(prog, rng)
        rnd["player_def"] += gain
        res["defense_gained"] = gain
        log(state, f"Defense card: +{gain} DEF ({rnd['player_def']}).")
    else:
        dmg, crit = roll_player_damage(prog, rng)
        res["rolled"] = dmg
        res["crit"] = crit
        log(state, f"Attack card: {dmg}{' (CRIT!)' if crit else ''}.")
        res.update(strike_enemy(state, dmg))

    rnd["next_card"] = draw_next_card(rng)

    if rnd["over"]:
        state["updated_at"] = now_ts()
        return res

    rnd["enemy_turn_pending"] = True
    if defer_enemy:
        res["enemy_turn_pending"] = True
    else:
        res["enemy_attack"] = enemy_turn(state, rng=rng)
    state["updated_at"] = now_ts()
    return res

def enemy_turn(state: Dict[str, Any], *, rng: Optional[random.Random] = None) -> Optional[Dict[str, Any]]:
    rnd = state["round"]
    if rnd["over"] or not rnd.get("enemy_turn_pending"):
        return None
    rng = rng or rng_for(state)
    rnd["enemy_turn_pending"] = False

    dmg, crit = roll_enemy_damage(rnd, rng)
    log(state, f"{rnd['enemy']['name']} hits for {dmg}{' (CRIT!)' if crit else ''}.")
    hit = damage_player(state, dmg)
    if hit["hp_lost"]:
        log(state, f"HP reduced to {rnd['player_hp']}.")
    state["updated_at"] = now_ts()
    return {"damage": dmg, "crit": crit, **hit}

def apply_upgrade(state: Dict[str, Any], kind: Any) -> Dict[str, Any]:
    """Записать победу и применить апгрейд. Новый раунд вызывающий начинает сам."""
    udef = content.get_upgrade_def(kind)
    if udef is None:
        raise UnknownUpgrade(f"unknown upgrade: {kind!r}")

    prog = state["progress"]
    prog["enemies_defeated"] += 1
    rnd = state.get("round")
    # текущие счётчики подтягиваем, только пока раунд идёт
    live = bool(rnd) and not rnd["over"]

    uid = udef["id"]
    if uid == "health":
        prog["base_max_hp"] += 1
        if live:
            rnd["player_hp"] = prog["base_max_hp"]
        log(state, f"Health upgraded to {prog['base_max_hp']}.")
    elif uid == "defense":
        prog["base_defense"] += 1
        if live:
            rnd["player_def"] = prog["base_defense"]
        log(state, f"Defense upgraded to {prog['base_defense']}.")
    elif uid == "attack":
        prog["attack_upgrades"] += 1
        prog["dmg_max"] = content.INITIAL_MAX_DAMAGE + prog["attack_upgrades"] * content.UPGRADE_STEP
        log(state, f"Attack upgraded to {prog['dmg_min']}-{prog['dmg_max']} (level {prog['attack_upgrades']}).")
    elif uid == "shield":
        prog["shield_upgrades"] += 1
        prog["def_min"] = content.INITIAL_MIN_DEFENSE + prog["shield_upgrades"] * content.UPGRADE_STEP
        prog["def_max"] = content.INITIAL_MAX_DEFENSE + prog["shield_upgrades"] * content.UPGRADE_STEP
        log(state, f"Shield upgraded to {prog['def_min']}-{prog['def_max']} (level {prog['shield_upgrades']}).")
    state["updated_at"] = now_ts()
    return udef

# ---- поток экранов ----

def sync_screen(state: Dict[str, Any]) -> None:
    rnd = state["round"]
    if not rnd["over"] or state.get("screen") != "COMBAT":
        return
    if rnd["player_dead"]:
        score = round_score(state)
        meta = state.setdefault("meta", {})
        meta["last_score"] = score
        meta["high_score"] = max(int(meta.get("high_score", 0)), score)
        state["screen"] = "DEFEAT"
        state.setdefault("ui", {})["toast"] = f"Defeat. Enemies defeated: {score}."
    else:
        state["screen"] = "UPGRADE"
        state.setdefault("ui", {})["toast"] = "Victory! Choose an upgrade."

def start_game(state: Dict[str, Any]) -> None:
    if state["round"]["over"]:
        reset_round(state)
    state["screen"] = "COMBAT"
    state["updated_at"] = now_ts()

def play_slot(state: Dict[str, Any], idx: int, *, defer_enemy: bool = False) -> Dict[str, Any]:
    """Сыграть карту из руки; слот занимает карта, показанная как следующая."""
    rnd = state["round"]
    hand = rnd["hand"]
    idx = int(idx)
    if not 0 <= idx < len(hand):
        raise IndexError(f"no card slot {idx}")
    incoming = rnd["next_card"]
    res = play_card(state, hand[idx] == "defense", defer_enemy=defer_enemy)
    if not res["played"]:
        return res
    hand[idx] = incoming
    res["slot"] = idx
    sync_screen(state)
    return res

def resolve_enemy_turn(state: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    res = enemy_turn(state)
    sync_screen(state)
    return res

def pick_upgrade(state: Dict[str, Any], kind: Any) -> None:
    rnd = state["round"]
    if not rnd["over"] or rnd["player_dead"]:
        state.setdefault("ui", {})["toast"] = "No upgrade to pick."
        return
    if content.get_upgrade_def(kind) is None:
        raise UnknownUpgrade(f"unknown upgrade: {kind!r}")
    if state.get("settings", {}).get("scale_after_upgrade"):
        apply_upgrade(state, kind)
        reset_round(state)
    else:
        # исторический порядок: раунд собран по старому счётчику
        reset_round(state)
        apply_upgrade(state, kind)
    state["screen"] = "COMBAT"

def restart(state: Dict[str, Any]) -> None:
    reset_progression(state)
    state["screen"] = "COMBAT"

def return_to_menu(state: Dict[str, Any]) -> None:
    reset_progression(state)
    state["screen"] = "MENU"

# ---- вид для клиента ----

def sanitize_for_client(state: Dict[str, Any]) -> Dict[str, Any]:
    # Делаем "view": без транзиентных ключей, плюс производные поля для фронта
    st = deep({k: v for k, v in state.items() if not k.startswith("_")})
    rnd = st.get("round")
    if rnd:
        rnd["enemy_damage_range"] = enemy_damage_range(rnd)
        rnd["next_card_sprite"] = content.CARD_SPRITES.get(rnd.get("next_card"))
        rnd["hand_view"] = [{"kind": k, "sprite": content.CARD_SPRITES.get(k)} for k in rnd.get("hand", [])]
    st["score"] = int(st["progress"]["enemies_defeated"])
    st["content_summary"] = {
        "upgrades": content.UPGRADES,
        "card_kinds": content.CARD_KINDS,
    }
    return st

# ---- экшены ----

def dispatch(state: Dict[str, Any], action: Dict[str, Any]) -> Any:
    typ = action.get("type")
    state.setdefault("ui", {}).setdefault("toast", "")
    state["ui"]["toast"] = ""

    if typ == "START":
        if state.get("screen") != "MENU":
            state["ui"]["toast"] = "Already in a run."
            return None
        start_game(state)
        return None

    if typ in ("PLAY_SLOT", "PLAY_CARD", "ENEMY_TURN") and state.get("screen") != "COMBAT":
        state["ui"]["toast"] = "Not in combat."
        return None

    if typ == "PLAY_SLOT":
        return play_slot(state, action.get("slot", 0), defer_enemy=bool(action.get("defer", False)))

    if typ == "PLAY_CARD":
        res = play_card(state, action.get("card") == "defense", defer_enemy=bool(action.get("defer", False)))
        sync_screen(state)
        return res

    if typ == "ENEMY_TURN":
        return resolve_enemy_turn(state)

    if typ == "PICK_UPGRADE":
        pick_upgrade(state, action.get("kind"))
        return None

    if typ == "RESET_ROUND":
        # после победы — через апгрейд, после смерти — только полный рестарт
        if state.get("screen") in ("UPGRADE", "DEFEAT"):
            state["ui"]["toast"] = "Round is finished."
            return None
        reset_round(state)
        return None

    if typ == "RESTART":
        restart(state)
        return None

    if typ == "MENU":
        return_to_menu(state)
        return None

    if typ == "SET_SCALING":
        state.setdefault("settings", {})["scale_after_upgrade"] = bool(action.get("value", False))
        state["ui"]["toast"] = "Scaling order changed."
        return None

    state["ui"]["toast"] = f"Unknown action: {typ}"
    return None
