"""YAML configuration loader for debtledger.

Loads the seed config files from the config/ directory:
  settings.yaml, reminders.yaml
"""

from pathlib import Path

import yaml

DEFAULT_PRIORITY_THRESHOLD = 100
DEFAULT_DUE_SOON_DAYS = 7
DEFAULT_NAME_SUFFIX = " (Auto)"
DEFAULT_MAX_OCCURRENCES = 366


class Config:
    """Loads and provides access to all YAML configuration files."""

    def __init__(self, config_dir: Path | str = "config"):
        self.config_dir = Path(config_dir)
        if not self.config_dir.is_dir():
            raise FileNotFoundError(f"Config directory not found: {self.config_dir}")

        self._settings: dict | None = None
        self._reminders: dict | None = None

    def _load(self, filename: str) -> dict | list:
        path = self.config_dir / filename
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
        if data is None:
            raise ValueError(f"Empty config file: {path}")
        return data

    @property
    def settings(self) -> dict:
        if self._settings is None:
            data = self._load("settings.yaml")
            if not isinstance(data, dict):
                raise ValueError("settings.yaml must be a mapping")
            self._settings = data
        return self._settings

    @property
    def reminders(self) -> dict[str, dict]:
        """Reminder templates keyed by escalation level."""
        if self._reminders is None:
            data = self._load("reminders.yaml")
            if isinstance(data, dict):
                self._reminders = data.get("levels", data)
            else:
                raise ValueError("reminders.yaml must be a mapping")
        return self._reminders

    # ── Display ─────────────────────────────────────────────

    @property
    def currency(self) -> dict:
        """Currency display settings: code, symbol, decimals."""
        cur = self.settings.get("currency", {})
        return {
            "code": cur.get("code", "USD"),
            "symbol": cur.get("symbol", "$"),
            "decimals": int(cur.get("decimals", 2)),
        }

    def format_amount(self, amount: float) -> str:
        cur = self.currency
        return f"{cur['symbol']}{amount:,.{cur['decimals']}f}"

    # ── Urgency ─────────────────────────────────────────────

    @property
    def priority_threshold(self) -> int:
        """Minimum urgency score for the top-priority item to be surfaced."""
        return int(self.settings.get("urgency", {}).get(
            "priority_threshold", DEFAULT_PRIORITY_THRESHOLD,
        ))

    @property
    def due_soon_days(self) -> int:
        return int(self.settings.get("urgency", {}).get(
            "due_soon_days", DEFAULT_DUE_SOON_DAYS,
        ))

    @property
    def score_with_returns(self) -> bool:
        """Use amount plus expected returns for the urgency amount term."""
        return bool(self.settings.get("urgency", {}).get("use_returns", False))

    # ── Recurring ───────────────────────────────────────────

    @property
    def recurring(self) -> dict:
        rec = self.settings.get("recurring", {})
        return {
            "catch_up": bool(rec.get("catch_up", True)),
            "max_occurrences": int(rec.get("max_occurrences", DEFAULT_MAX_OCCURRENCES)),
            "name_suffix": rec.get("name_suffix", DEFAULT_NAME_SUFFIX),
        }

    # ── Rate limits ─────────────────────────────────────────

    def rate_limit_for(self, action: str) -> dict | None:
        """Return {max_attempts, window_seconds} for an action, or None.

        Configured in settings.yaml under rate_limits.
        """
        limits = self.settings.get("rate_limits", {})
        entry = limits.get(action)
        if entry is None:
            return None
        return {
            "max_attempts": int(entry.get("max_attempts", 5)),
            "window_seconds": float(entry.get("window_seconds", 60)),
        }
