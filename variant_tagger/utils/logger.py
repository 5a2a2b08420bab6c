# variant_tagger/utils/logger.py
import os, sys, time

LEVELS = {"ERROR": 40, "WARN": 30, "INFO": 20, "DEBUG": 10, "NONE": 100}
LOG_LEVEL = LEVELS.get(os.getenv("LOG_LEVEL", "INFO").upper(), 20)

def set_level(name: str):
    """Change the threshold at runtime (unknown names fall back to INFO)."""
    global LOG_LEVEL
    LOG_LEVEL = LEVELS.get((name or "").upper(), 20)

def _ts():
    return time.strftime("%H:%M:%S")

def log(level: str, msg: str, tag: str | None = None):
    if LEVELS[level] < LOG_LEVEL:
        return
    prefix = f"[{tag}] " if tag else ""
    stream = sys.stdout if LEVELS[level] < 40 else sys.stderr
    print(f"[{_ts()}][{level}] {prefix}{msg}", file=stream, flush=True)

def debug(msg, tag=None): log("DEBUG", msg, tag)
def info(msg, tag=None):  log("INFO", msg, tag)
def warn(msg, tag=None):  log("WARN", msg, tag)
def error(msg, tag=None): log("ERROR", msg, tag)
