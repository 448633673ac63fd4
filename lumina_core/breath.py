from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, fields
from typing import Any, Optional

import httpx

from .geometry import clamp, clamp01

lib_logger = logging.getLogger("lumina_core")

VOLUME_KEY = "breathing_volume"
REGULARITY_KEY = "breathing_regularity"
RATE_KEY = "breathing_rate"

CALIBRATION_EPSILON = 1e-4
MIN_SMOOTHED_MULTIPLIER = 0.01
MIN_SMOOTH_TAU = 0.01


@dataclass
class BreathConfig:
    """Tuning for the breath-driven painting speed and gate."""
    api_base_url: str = "http://127.0.0.1:8000"
    path_volume: str = "/webhooks/breathing-volume"
    path_regularity: str = "/webhooks/breathing-regularity"
    path_rate: str = "/webhooks/breathing-rate"

    poll_interval: float = 0.10
    request_timeout: float = 2.0

    # secondsPerCell at multiplier == 1
    base_seconds_per_cell: float = 1.5

    min_multiplier: float = 0.2
    max_multiplier: float = 2.0
    gamma: float = 0.75  # < 1 boosts weak signals

    use_regularity: bool = True
    regularity_weight: float = 0.3

    use_rate_bonus: bool = True
    target_bpm_min: float = 6.0
    target_bpm_max: float = 10.0
    bpm_bonus: float = 0.2

    gate_painting: bool = True
    on_threshold: float = 0.20
    off_threshold: float = 0.12

    smooth_tau: float = 0.25
    calibration_blend: float = 0.02
    initial_min: float = 0.0
    initial_max: float = 0.05

    @classmethod
    def from_env(cls, **overrides: Any) -> 'BreathConfig':
        """Reads LUMINA_BREATH_<FIELD> variables, e.g. LUMINA_BREATH_GAMMA=0.6.

        LUMINA_BREATH_URL is accepted as a short form of the base URL.
        """
        values: dict = {}
        url = os.getenv("LUMINA_BREATH_URL")
        if url is not None:
            values["api_base_url"] = url
        for f in fields(cls):
            raw = os.getenv(f"LUMINA_BREATH_{f.name.upper()}")
            if raw is None:
                continue
            if f.type in ("bool", bool):
                values[f.name] = raw.strip().lower() in ("1", "true", "yes", "on")
            elif f.type in ("float", float):
                try:
                    values[f.name] = float(raw)
                except ValueError:
                    lib_logger.warning(f"BreathConfig: ignoring LUMINA_BREATH_{f.name.upper()}={raw!r}")
            else:
                values[f.name] = raw
        values.update(overrides)
        return cls(**values)


def combine_url(base_url: str, path: str) -> str:
    if not base_url or not base_url.strip():
        return path or ""
    if not path or not path.strip():
        return base_url
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def parse_breath_value(payload: Any, key: str) -> Optional[float]:
    """Extracts one finite number stored under `key` in a JSON object; anything else is None."""
    if not isinstance(payload, dict):
        return None
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if not math.isfinite(value):
        return None
    return value


def _read_response(response: httpx.Response, key: str) -> Optional[float]:
    response.raise_for_status()
    try:
        payload = response.json()
    except ValueError:
        return None
    return parse_breath_value(payload, key)


def fetch_breath_value(client: httpx.Client, url: str, key: str, timeout: float) -> Optional[float]:
    """GETs `url` and returns the named field, or None on any transport or payload failure."""
    try:
        response = client.get(url, timeout=timeout)
        return _read_response(response, key)
    except httpx.HTTPError as e:
        lib_logger.debug(f"Breath fetch failed for {url}: {e!r}")
        return None


async def afetch_breath_value(client: httpx.AsyncClient, url: str, key: str, timeout: float) -> Optional[float]:
    try:
        response = await client.get(url, timeout=timeout)
        return _read_response(response, key)
    except httpx.HTTPError as e:
        lib_logger.debug(f"Breath fetch failed for {url}: {e!r}")
        return None


class BreathController:
    """
    Converts sampled breathing metrics into a painting-speed multiplier and an on/off gate.

    Two independent clocks drive it:
    - poll_once()/apoll_once(): the sampling clock. Fetches volume (plus
      regularity and rate when enabled), adapts the calibration bounds,
      normalizes the volume, updates the hysteresis gate and computes the
      target multiplier.
    - tick(dt): the smoothing clock. Moves the published multiplier toward
      the target with time constant `smooth_tau`, whatever the sampling pace.

    A fetch that fails keeps the last known value; nothing here raises into
    the host loop.
    """

    def __init__(
        self,
        config: Optional[BreathConfig] = None,
        client: Optional[httpx.Client] = None,
        async_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config or BreathConfig()
        cfg = self.config
        self._client = client
        self._async_client = async_client
        self._owns_client = client is None
        self._owns_async_client = async_client is None

        self.enabled = bool(cfg.api_base_url and cfg.api_base_url.strip())
        if not self.enabled:
            lib_logger.error("BreathController: no api_base_url configured; breath control disabled")

        # hysteresis order
        if cfg.off_threshold >= cfg.on_threshold:
            cfg.off_threshold = max(0.0, cfg.on_threshold - 0.05)

        self.calibration_min = float(cfg.initial_min)
        self.calibration_max = max(float(cfg.initial_max), self.calibration_min + CALIBRATION_EPSILON)

        self.target_multiplier = 1.0
        self.smoothed_multiplier = 1.0
        self.last_volume: Optional[float] = None
        self.last_regularity = 1.0
        self.last_rate_bps = 0.0
        self.last_normalized = 0.0
        # closed until the first sample arrives; a disabled controller never blocks painting
        self.gate_open = not (cfg.gate_painting and self.enabled)

    # ---------- endpoints ----------

    @property
    def url_volume(self) -> str:
        return combine_url(self.config.api_base_url, self.config.path_volume)

    @property
    def url_regularity(self) -> str:
        return combine_url(self.config.api_base_url, self.config.path_regularity)

    @property
    def url_rate(self) -> str:
        return combine_url(self.config.api_base_url, self.config.path_rate)

    def _sync_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.config.request_timeout)
        return self._client

    def _aclient(self) -> httpx.AsyncClient:
        if self._async_client is None:
            self._async_client = httpx.AsyncClient(timeout=self.config.request_timeout)
        return self._async_client

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    async def aclose(self) -> None:
        if self._owns_async_client and self._async_client is not None:
            await self._async_client.aclose()
            self._async_client = None
        self.close()

    # ---------- sampling clock ----------

    def poll_once(self) -> bool:
        """Fetches one round of samples synchronously. Returns whether a volume was obtained."""
        if not self.enabled:
            return False
        cfg = self.config
        client = self._sync_client()
        volume = fetch_breath_value(client, self.url_volume, VOLUME_KEY, cfg.request_timeout)
        regularity = None
        rate = None
        if cfg.use_regularity:
            regularity = fetch_breath_value(client, self.url_regularity, REGULARITY_KEY, cfg.request_timeout)
        if cfg.use_rate_bonus:
            rate = fetch_breath_value(client, self.url_rate, RATE_KEY, cfg.request_timeout)
        return self.ingest(volume, regularity, rate)

    async def apoll_once(self) -> bool:
        """Async twin of poll_once(); awaits each request so the tick loop keeps running."""
        if not self.enabled:
            return False
        cfg = self.config
        client = self._aclient()
        volume = await afetch_breath_value(client, self.url_volume, VOLUME_KEY, cfg.request_timeout)
        regularity = None
        rate = None
        if cfg.use_regularity:
            regularity = await afetch_breath_value(client, self.url_regularity, REGULARITY_KEY, cfg.request_timeout)
        if cfg.use_rate_bonus:
            rate = await afetch_breath_value(client, self.url_rate, RATE_KEY, cfg.request_timeout)
        return self.ingest(volume, regularity, rate)

    def ingest(self, volume: Optional[float], regularity: Optional[float] = None,
               rate_bps: Optional[float] = None) -> bool:
        """Folds one round of samples into the control state; None means 'not obtained'."""
        if regularity is not None:
            self.last_regularity = clamp01(regularity)
        if rate_bps is not None:
            self.last_rate_bps = max(0.0, rate_bps)
        if volume is None:
            return False
        v = max(0.0, volume)
        self.last_volume = v
        self.target_multiplier = self._compute_multiplier_and_gate(v, self.last_regularity, self.last_rate_bps)
        return True

    def _calibrate(self, volume: float) -> None:
        k = self.config.calibration_blend
        lo, hi = self.calibration_min, self.calibration_max
        lo = lo + (min(lo, volume) - lo) * k
        hi = hi + (max(hi, volume) - hi) * k
        if hi <= lo + CALIBRATION_EPSILON:
            hi = lo + CALIBRATION_EPSILON
        self.calibration_min, self.calibration_max = lo, hi

    def normalize(self, volume: float) -> float:
        return clamp01((volume - self.calibration_min) / (self.calibration_max - self.calibration_min))

    def update_gate(self, norm: float) -> bool:
        cfg = self.config
        if not cfg.gate_painting:
            self.gate_open = True
        elif not self.gate_open and norm >= cfg.on_threshold:
            self.gate_open = True
        elif self.gate_open and norm <= cfg.off_threshold:
            self.gate_open = False
        return self.gate_open

    def multiplier_for(self, norm: float, regularity: float, rate_bps: float) -> float:
        cfg = self.config
        m = cfg.min_multiplier + (cfg.max_multiplier - cfg.min_multiplier) * (norm ** cfg.gamma)
        if cfg.use_regularity:
            w = cfg.regularity_weight
            m *= (1.0 - w) + w * clamp01(regularity)
        if cfg.use_rate_bonus:
            bpm = rate_bps * 60.0  # endpoint reports breaths/second
            if cfg.target_bpm_min <= bpm <= cfg.target_bpm_max:
                m *= 1.0 + max(0.0, cfg.bpm_bonus)
        return clamp(m, cfg.min_multiplier, cfg.max_multiplier * 3.0)

    def _compute_multiplier_and_gate(self, volume: float, regularity: float, rate_bps: float) -> float:
        self._calibrate(volume)
        norm = self.normalize(volume)
        self.last_normalized = norm
        self.update_gate(norm)
        return self.multiplier_for(norm, regularity, rate_bps)

    # ---------- smoothing clock ----------

    def tick(self, dt: float) -> float:
        """Advances exponential smoothing by dt seconds and returns the smoothed multiplier."""
        if dt > 0:
            alpha = 1.0 - math.exp(-dt / max(MIN_SMOOTH_TAU, self.config.smooth_tau))
            self.smoothed_multiplier += (self.target_multiplier - self.smoothed_multiplier) * alpha
        return self.smoothed_multiplier

    # ---------- published outputs ----------

    def get_multiplier(self) -> float:
        return self.smoothed_multiplier

    def is_gate_open(self) -> bool:
        return self.gate_open

    def seconds_per_cell(self) -> float:
        return self.config.base_seconds_per_cell / max(MIN_SMOOTHED_MULTIPLIER, self.smoothed_multiplier)
