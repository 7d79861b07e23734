# File: azurebox/config.py
from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from azurebox import database as db
from azurebox.graph import DEFAULT_PROFILE_FIELDS
from azurebox.logger import logger
from azurebox.models import DEFAULT_SCOPES, ProviderConfig


# ---------------------------
# Helpers
# ---------------------------

def _coerce_int(v: Any, *, default: int) -> int:
    if v is None:
        return default
    if isinstance(v, bool):
        raise ValueError(f"Cannot coerce {v!r} to int")
    if isinstance(v, int):
        return v
    if isinstance(v, str):
        v = v.strip()
        if v.isdigit() or (v.startswith("-") and v[1:].isdigit()):
            return int(v)
        try:
            return int(float(v))
        except ValueError:
            pass
    raise ValueError(f"Cannot coerce {v!r} to int")


def _coerce_list(v: Any, *, default: List[str]) -> List[str]:
    # generische String-Listen: SCOPE + PROFILE_FIELDS
    if v is None:
        return list(default)
    if isinstance(v, (list, tuple)):
        return [str(x) for x in v]
    if isinstance(v, str):
        parts = [p.strip() for p in v.replace(" ", ",").split(",") if p.strip()]
        return parts or list(default)
    raise ValueError(f"Cannot coerce {v!r} to List[str]")


# ---------------------------
# Defaults (nur Fallback/Seeding)
# ---------------------------

_DEFAULTS: Dict[str, Any] = {
    "SECRET_KEY": "",
    "CLIENT_ID": "",
    "CLIENT_SECRET": "",
    "TENANT_ID": "",
    "REDIRECT_URI": "http://localhost:8000/",
    "SCOPE": list(DEFAULT_SCOPES),
    "PROFILE_FIELDS": list(DEFAULT_PROFILE_FIELDS),
    "SESSION_TIMEOUT": 60 * 60,
    "HTTP_TIMEOUT": 30,
}

_STRING_KEYS = {"SECRET_KEY", "CLIENT_ID", "CLIENT_SECRET", "TENANT_ID", "REDIRECT_URI"}
_INT_KEYS = {"SESSION_TIMEOUT", "HTTP_TIMEOUT"}
_LIST_KEYS = {"SCOPE", "PROFILE_FIELDS"}


# ---------------------------
# Dataclass
# ---------------------------

@dataclass
class Settings:
    SECRET_KEY: str
    CLIENT_ID: str
    CLIENT_SECRET: str
    TENANT_ID: str
    REDIRECT_URI: str
    SCOPE: List[str]
    PROFILE_FIELDS: List[str]
    SESSION_TIMEOUT: int
    HTTP_TIMEOUT: int

    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False, compare=False)

    @property
    def AUTHORITY(self) -> str:
        return f"https://login.microsoftonline.com/{self.TENANT_ID}"

    @property
    def is_configured(self) -> bool:
        return bool(self.TENANT_ID and self.CLIENT_ID and self.CLIENT_SECRET and self.REDIRECT_URI)

    def provider_config(self) -> ProviderConfig:
        return ProviderConfig(
            tenant_id=self.TENANT_ID,
            client_id=self.CLIENT_ID,
            client_secret=self.CLIENT_SECRET,
            redirect_uri=self.REDIRECT_URI,
            scopes=tuple(self.SCOPE),
        )

    def as_safe_dict(self) -> Dict[str, Any]:
        # Wichtig: Secrets maskieren
        return {
            "SECRET_KEY": "***",
            "CLIENT_ID": self.CLIENT_ID,
            "CLIENT_SECRET": "***",
            "TENANT_ID": self.TENANT_ID,
            "AUTHORITY": self.AUTHORITY,
            "REDIRECT_URI": self.REDIRECT_URI,
            "SCOPE": list(self.SCOPE),
            "PROFILE_FIELDS": list(self.PROFILE_FIELDS),
            "SESSION_TIMEOUT": self.SESSION_TIMEOUT,
            "HTTP_TIMEOUT": self.HTTP_TIMEOUT,
        }

    def update(self, **fields: Any) -> None:
        with self._lock:
            unknown = set(fields) - set(_DEFAULTS)
            if unknown:
                raise AttributeError(f"Unknown setting(s): {', '.join(sorted(unknown))}")

            for k in list(fields.keys()):
                if k in _INT_KEYS:
                    fields[k] = _coerce_int(fields[k], default=getattr(self, k))
                elif k in _LIST_KEYS:
                    fields[k] = _coerce_list(fields[k], default=getattr(self, k))
                elif k in _STRING_KEYS and fields[k] is not None:
                    fields[k] = str(fields[k])

            # In-Memory aktualisieren, danach persistieren
            for k, v in fields.items():
                setattr(self, k, v)
            for k, v in fields.items():
                db.settings_set(k, v)

            redacted = {k: ("***" if "SECRET" in k else v) for k, v in fields.items()}
            logger.info("Config updated: %s", redacted)

    @classmethod
    def from_values(cls, raw: Dict[str, Any]) -> "Settings":
        def _get_or_default(key: str) -> Any:
            return raw.get(key, _DEFAULTS[key])

        return cls(
            SECRET_KEY      = str(_get_or_default("SECRET_KEY")),
            CLIENT_ID       = str(_get_or_default("CLIENT_ID")),
            CLIENT_SECRET   = str(_get_or_default("CLIENT_SECRET")),
            TENANT_ID       = str(_get_or_default("TENANT_ID")),
            REDIRECT_URI    = str(_get_or_default("REDIRECT_URI")),
            SCOPE           = _coerce_list(_get_or_default("SCOPE"), default=_DEFAULTS["SCOPE"]),
            PROFILE_FIELDS  = _coerce_list(_get_or_default("PROFILE_FIELDS"), default=_DEFAULTS["PROFILE_FIELDS"]),
            SESSION_TIMEOUT = _coerce_int(_get_or_default("SESSION_TIMEOUT"), default=_DEFAULTS["SESSION_TIMEOUT"]),
            HTTP_TIMEOUT    = _coerce_int(_get_or_default("HTTP_TIMEOUT"), default=_DEFAULTS["HTTP_TIMEOUT"]),
        )

    @classmethod
    def load_from_db(cls) -> "Settings":
        db.init_db()

        # Seed: NUR Defaults in DB schreiben, falls Keys fehlen
        seed_pairs = {k: v for k, v in _DEFAULTS.items() if db.settings_get(k, None) is None}
        if seed_pairs:
            db.settings_init_defaults(seed_pairs)

        try:
            return cls.from_values(db.settings_all())
        except Exception as e:
            logger.exception("Failed to load settings from DB, falling back to defaults. Error: %s", e)
            return cls.from_values({})


# ---------------------------
# Singleton + Public API
# ---------------------------

_cfg: Optional[Settings] = None
_cfg_lock = threading.Lock()


def get_settings() -> Settings:
    global _cfg
    with _cfg_lock:
        if _cfg is None:
            _cfg = Settings.load_from_db()
            logger.info("Config loaded (safe): %s", _cfg.as_safe_dict())
        return _cfg


def reload_settings() -> Settings:
    cfg = get_settings()
    new_cfg = Settings.load_from_db()
    with cfg._lock:
        for f in dataclasses.fields(Settings):
            if f.name == "_lock":
                continue
            setattr(cfg, f.name, getattr(new_cfg, f.name))
    logger.info("Config reloaded (safe): %s", cfg.as_safe_dict())
    return cfg
