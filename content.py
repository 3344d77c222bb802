# content.py
# Данные и числа баланса: враги, карты, апгрейды. Вся логика — в game.py.

from __future__ import annotations
from typing import Dict, List, Any, Optional

CARD_KINDS = ["attack", "defense"]

# Шансы
PLAYER_CRIT_CHANCE = 0.01
PLAYER_CRIT_MULT = 2
ENEMY_CRIT_CHANCE = 0.20
ENEMY_CRIT_MULT = 1.5
NEXT_CARD_ATTACK_CHANCE = 0.50

# Стартовые значения игрока (сбрасываются только при полном рестарте)
INITIAL_PLAYER_HP = 10
INITIAL_PLAYER_DEFENSE = 5
INITIAL_MIN_DAMAGE = 3
INITIAL_MAX_DAMAGE = 5
INITIAL_MIN_DEFENSE = 2
INITIAL_MAX_DEFENSE = 4
DEFENSE_ROLL_SPREAD = 3  # бросок 0..2 сверху к минимуму

# Враг
ENEMY_BASE_HP = 15
ENEMY_HP_STEP = 3        # +3 HP каждые 2 побеждённых
ENEMY_MIN_DAMAGE = 1
ENEMY_MAX_DAMAGE = 3     # +1 каждые 3 побеждённых

# Рука: 2 защиты + 2 атаки в начале раунда
HAND_SIZE = 4
STARTING_HAND = ["defense", "defense", "attack", "attack"]

UPGRADE_STEP = 0.5

def _enemy(eid: str, name: str) -> Dict[str, Any]:
    return {"id": eid, "name": name, "sprite": f"sprites/Enemies/{name}.png"}

ENEMIES: List[Dict[str, Any]] = [
    _enemy("VOIDLING", "voidling"),
    _enemy("YELLOW_FREDERICK", "yellow frederick"),
    _enemy("TUNG_AHUR", "tung ahur"),
    _enemy("TUNG", "tung"),
    _enemy("VOIDMAGE", "voidmage"),
    _enemy("RAGE", "rage"),
    _enemy("SOBBING_SON", "sobbing son"),
    _enemy("BLAKEYE", "blakeye"),
    _enemy("SMILE", "smile"),
    _enemy("BLACKLIGHT", "blacklight"),
]

ENEMY_INDEX: Dict[str, Dict[str, Any]] = {e["id"]: e for e in ENEMIES}

# Если ростер пуст — этот враг
DEFAULT_ENEMY = ENEMY_INDEX["YELLOW_FREDERICK"]

CARD_SPRITES = {
    "attack": "sprites/Cards/attack.png",
    "defense": "sprites/Cards/defense.png",
}

# Порядок важен: индекс = номер кнопки в окне победы
UPGRADES: List[Dict[str, Any]] = [
    {"id": "health", "name": "Health Upgrade", "desc": "+1 max HP."},
    {"id": "defense", "name": "Defense Upgrade", "desc": "+1 starting defense."},
    {"id": "attack", "name": "Attack Upgrade", "desc": "+0.5 max damage."},
    {"id": "shield", "name": "Shield Upgrade", "desc": "+0.5 defense gained per card."},
]

UPGRADE_INDEX: Dict[str, Dict[str, Any]] = {u["id"]: u for u in UPGRADES}

def get_upgrade_def(kind: Any) -> Optional[Dict[str, Any]]:
    """Апгрейд по id ("attack") или по номеру кнопки (2). None — если такого нет."""
    if isinstance(kind, bool):
        return None
    if isinstance(kind, int):
        if 0 <= kind < len(UPGRADES):
            return UPGRADES[kind]
        return None
    if isinstance(kind, str):
        return UPGRADE_INDEX.get(kind.strip().lower())
    return None

def initial_progress() -> Dict[str, Any]:
    return {
        "enemies_defeated": 0,
        "attack_upgrades": 0,
        "shield_upgrades": 0,
        "base_max_hp": INITIAL_PLAYER_HP,
        "base_defense": INITIAL_PLAYER_DEFENSE,
        "dmg_min": INITIAL_MIN_DAMAGE,
        "dmg_max": float(INITIAL_MAX_DAMAGE),
        "def_min": float(INITIAL_MIN_DEFENSE),
        "def_max": float(INITIAL_MAX_DEFENSE),
    }

def tuning_summary() -> Dict[str, Any]:
    return {
        "player_crit_chance": PLAYER_CRIT_CHANCE,
        "player_crit_mult": PLAYER_CRIT_MULT,
        "enemy_crit_chance": ENEMY_CRIT_CHANCE,
        "enemy_crit_mult": ENEMY_CRIT_MULT,
        "next_card_attack_chance": NEXT_CARD_ATTACK_CHANCE,
        "enemy_base_hp": ENEMY_BASE_HP,
        "enemy_damage": [ENEMY_MIN_DAMAGE, ENEMY_MAX_DAMAGE],
        "hand_size": HAND_SIZE,
    }
