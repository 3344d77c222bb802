# server.py
# Лёгкий локальный сервер (Flask): держит сейвы сессий и рекорд, принимает действия игрока.
# Запуск: python server.py  (или flask --app server run)

from __future__ import annotations
from typing import Dict, Any
import os, json, tempfile

from flask import Flask, request, jsonify

import game
import content

APP_DIR = os.path.dirname(os.path.abspath(__file__))
SAVE_DIR = os.path.join(APP_DIR, "saves")
HIGH_SCORE_FILE = "highscore.txt"
os.makedirs(SAVE_DIR, exist_ok=True)

app = Flask(__name__)

def save_path(sid: str) -> str:
    safe = "".join(ch for ch in sid if ch.isalnum() or ch in "_-")
    return os.path.join(SAVE_DIR, f"{safe}.json")

def high_score_path() -> str:
    return os.path.join(SAVE_DIR, HIGH_SCORE_FILE)

def _atomic_write(path: str, text: str) -> None:
    tmp_fd, tmp_path = tempfile.mkstemp(prefix="save_", suffix=".tmp", dir=SAVE_DIR)
    try:
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)

# ---- рекорд ----

def load_high_score() -> int:
    p = high_score_path()
    if not os.path.exists(p):
        return 0
    try:
        with open(p, "r", encoding="utf-8") as f:
            return max(0, int(f.read().strip() or 0))
    except (OSError, ValueError):
        # мусор в файле — считаем, что рекорда нет
        return 0

def save_high_score(score: int) -> int:
    """Записывает max(сохранённый, текущий) и возвращает итоговый рекорд."""
    best = load_high_score()
    score = int(score)
    if score > best:
        best = score
        _atomic_write(high_score_path(), f"{best}\n")
    return best

def record_score(st: Dict[str, Any]) -> None:
    meta = st.setdefault("meta", {})
    score = meta.get("last_score")
    if score is None:
        score = game.round_score(st)
    meta["high_score"] = save_high_score(score)

# ---- сейвы сессий ----

def load_state(sid: str) -> Dict[str, Any]:
    p = save_path(sid)
    was_corrupt = False
    if os.path.exists(p):
        try:
            with open(p, "r", encoding="utf-8") as f:
                return json.load(f)
        except ValueError:
            # битый сейв (в т.ч. не UTF-8) — переименуем и продолжим с новым
            was_corrupt = True
            corrupt = p + ".corrupt"
            if os.path.exists(corrupt):
                corrupt = p + f".{game.now_ts()}.corrupt"
            os.replace(p, corrupt)
        except OSError:
            was_corrupt = True
    st = game.default_state()
    if was_corrupt:
        st.setdefault("ui", {})["toast"] = "Save was corrupted and has been reset."
    return st

def _strip_transient(state: Dict[str, Any]):
    for key in [k for k in state if k.startswith("_")]:
        state.pop(key, None)

def save_state(sid: str, st: Dict[str, Any]) -> None:
    st["updated_at"] = game.now_ts()
    _strip_transient(st)
    _atomic_write(save_path(sid), json.dumps(st, ensure_ascii=False, indent=2))

# ---- API ----

@app.post("/api/bootstrap")
def api_bootstrap():
    data = request.get_json(silent=True) or {}
    sid = data.get("sid")
    if not sid:
        sid = game.make_uid("sid")
        st = game.default_state()
    else:
        st = load_state(sid)
        # лёгкая защита от несовпадений версии
        if int(st.get("version", 0)) != game.SAVE_VERSION:
            st = game.default_state()
    st.setdefault("meta", {})["high_score"] = load_high_score()
    save_state(sid, st)
    return jsonify({"sid": sid, "state": game.sanitize_for_client(st)})

@app.post("/api/action")
def api_action():
    data = request.get_json(silent=True) or {}
    sid = data.get("sid")
    action = data.get("action", {})
    if not sid:
        return jsonify({"error": "missing sid"}), 400
    st = load_state(sid)
    was_screen = st.get("screen")
    result = None
    try:
        result = game.dispatch(st, action)
    except Exception as e:
        # чтобы фронт не зависал
        st.setdefault("ui", {})["toast"] = f"Error: {type(e).__name__}"
    if st.get("screen") == "DEFEAT" and was_screen != "DEFEAT":
        record_score(st)
    save_state(sid, st)
    return jsonify({"sid": sid, "state": game.sanitize_for_client(st), "result": result})

@app.get("/api/content")
def api_content():
    return jsonify({
        "enemies": content.ENEMIES,
        "card_kinds": content.CARD_KINDS,
        "card_sprites": content.CARD_SPRITES,
        "upgrades": content.UPGRADES,
        "tuning": content.tuning_summary(),
    })

@app.get("/api/highscore")
def api_highscore():
    return jsonify({"high_score": load_high_score()})

@app.get("/api/ping")
def ping():
    return jsonify({"ok": True})

if __name__ == "__main__":
    # host=127.0.0.1 — только локально
    app.run(host="127.0.0.1", port=5173, debug=True)
