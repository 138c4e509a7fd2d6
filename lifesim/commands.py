"""Decoding of external control messages into ``Sim`` control calls.

Messages are JSON objects with a ``type`` field. Anything malformed is
ignored; every decodable message is acknowledged.
"""
import json
import logging
import math
from typing import Any, Dict, Optional

from .entities import FEMALE, MALE
from .sim import Sim

log = logging.getLogger(__name__)

ACK = {"ok": "received"}
IGNORED = {"ok": "ignored"}


def decode(raw) -> Optional[Dict[str, Any]]:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    try:
        msg = json.loads(raw)
    except (TypeError, ValueError):
        return None
    return msg if isinstance(msg, dict) else None


def _number(msg: Dict[str, Any], key: str) -> Optional[float]:
    v = msg.get(key)
    # bool is an int subclass but never a valid coordinate or energy
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    v = float(v)
    # json.loads accepts NaN and Infinity
    return v if math.isfinite(v) else None


def handle_raw(sim: Sim, raw) -> Dict[str, str]:
    msg = decode(raw)
    if msg is None:
        log.debug("ignoring undecodable message %r", raw)
        return dict(IGNORED)
    return handle_command(sim, msg)


def handle_command(sim: Sim, msg: Dict[str, Any]) -> Dict[str, str]:
    mtype = msg.get("type")
    if mtype == "add_food":
        _add_food(sim, msg)
    elif mtype == "toggle_random_food":
        enabled = msg.get("enabled")
        if isinstance(enabled, bool):
            sim.set_random_food_enabled(enabled)
    elif mtype == "add_agent":
        _add_agent(sim, msg)
    else:
        log.debug("ignoring command of unknown type %r", mtype)
    return dict(ACK)


def _add_food(sim: Sim, msg: Dict[str, Any]):
    x, y = _number(msg, "x"), _number(msg, "y")
    if x is None or y is None:
        return
    energy = _number(msg, "energy")
    sim.add_food_at(int(x), int(y), sim.cfg.DEFAULT_FOOD_ENERGY if energy is None else energy)


def _add_agent(sim: Sim, msg: Dict[str, Any]):
    x, y = _number(msg, "x"), _number(msg, "y")
    if x is None or y is None:
        return
    speed = _number(msg, "spd")
    sim.add_agent_at(
        int(x), int(y),
        energy=_number(msg, "energy"),
        sex=FEMALE if msg.get("sex") == FEMALE else MALE,
        aggression=_number(msg, "agg"),
        speed=None if speed is None else int(speed),
        strength=_number(msg, "strength"),
        reproduction=_number(msg, "repro"),
    )
