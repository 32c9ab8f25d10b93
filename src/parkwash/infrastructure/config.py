# File: src/parkwash/infrastructure/config.py
"""
Facility configuration and logging setup

FacilitySettings is a pydantic model so values read from the environment
are coerced and validated the same way as DTO input. Every field can be
set through a PARKWASH_<FIELD> variable; dict fields take JSON.
"""

from datetime import time
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional
import json
import logging
import os

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ENV_PREFIX = "PARKWASH_"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class FacilitySettings(BaseModel):
    """Operating parameters of one facility"""
    model_config = ConfigDict(validate_assignment=True, frozen=False)

    # Reservation calendar
    opening_time: time = time(6, 0)
    closing_time: time = time(20, 0)
    slot_minutes: int = Field(30, gt=0)

    # Capacity
    parking_reservation_capacity: Optional[int] = Field(None, ge=1)
    wash_bays: int = Field(2, ge=1)
    wash_only_consumes_space: bool = False

    # Prices
    currency: str = Field("COP", min_length=3, max_length=3)
    wash_prices: Dict[str, Decimal] = Field(
        default_factory=lambda: {"simple": Decimal("15000"), "completo": Decimal("35000")}
    )
    wash_price_overrides: Dict[str, Decimal] = Field(default_factory=dict)

    # Infrastructure
    database_url: str = "sqlite:///./parkwash.db"
    redis_url: Optional[str] = None
    lock_timeout_seconds: float = Field(10, gt=0)
    log_level: str = "INFO"

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @field_validator('log_level')
    @classmethod
    def known_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator('wash_prices', 'wash_price_overrides')
    @classmethod
    def lower_case_keys(cls, v: Dict[str, Decimal]) -> Dict[str, Decimal]:
        for key, price in v.items():
            if price <= 0:
                raise ValueError(f"Wash price for '{key}' must be positive")
        return {key.strip().lower(): price for key, price in v.items()}

    @model_validator(mode='after')
    def check_business_hours(self) -> 'FacilitySettings':
        if self.opening_time >= self.closing_time:
            raise ValueError("opening_time must be before closing_time")
        return self

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> 'FacilitySettings':
        """Build settings from PARKWASH_* variables, explicit overrides win"""
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for name, field in cls.model_fields.items():
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is None or raw == "":
                continue
            if field.annotation == Dict[str, Decimal]:
                values[name] = json.loads(raw)
            else:
                values[name] = raw
        values.update(overrides)
        return cls(**values)


def configure_logging(settings: FacilitySettings) -> None:
    """Set the root logger level and format"""
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    logging.getLogger().setLevel(settings.log_level)
