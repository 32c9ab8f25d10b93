# File: src/parkwash/application/tariffs.py
"""
Tariff Table Application Service

Responsibilities:
1. Resolve the active tariff for a vehicle type and billing unit
2. Turn elapsed time into a fee (parking) or a fixed price (washes)
3. Administer the price list (admin role only)

Wash prices are not tariffs: they come from FacilitySettings so a price
change needs no data migration.
"""

from typing import List, Optional, Union
from decimal import Decimal
import logging

from ..domain.clock import Clock
from ..domain.exceptions import NotFound, TariffNotConfigured, InvalidWashType, ValidationError
from ..domain.models import (
    Tariff, Money, VehicleType, TariffServiceType, WashType, RequestContext, parse_enum
)
from ..domain.strategies import PricingStrategy, TariffUnitPricingStrategy
from ..infrastructure.config import FacilitySettings
from ..infrastructure.repositories import UnitOfWork
from .dtos import TariffCreateDTO, TariffUpdateDTO, FeeQuoteDTO, MoneyDTO

# Starter price list: per-hour rates in pesos
DEFAULT_TARIFFS = (
    (VehicleType.CARRO, Decimal("5000")),
    (VehicleType.MOTO, Decimal("2500")),
    (VehicleType.CICLA, Decimal("1500")),
)


class TariffTable:
    """
    Price list service

    Several active tariffs may match the same keys; the earliest created
    one wins so adding a tariff never silently changes live prices.
    """

    def __init__(
        self,
        uow_factory,
        clock: Clock,
        settings: FacilitySettings,
        pricing_strategy: Optional[PricingStrategy] = None
    ):
        self.uow_factory = uow_factory
        self.clock = clock
        self.settings = settings
        self.pricing_strategy = pricing_strategy or TariffUnitPricingStrategy()
        self.logger = logging.getLogger(self.__class__.__name__)

    # ------------------------------------------------------------------
    # Resolution and pricing
    # ------------------------------------------------------------------

    def resolve(
        self,
        vehicle_type: Union[VehicleType, str],
        service_type: Union[TariffServiceType, str] = TariffServiceType.HORA
    ) -> Tariff:
        with self.uow_factory() as uow:
            return self.resolve_in(uow, vehicle_type, service_type)

    def resolve_in(
        self,
        uow: UnitOfWork,
        vehicle_type: Union[VehicleType, str],
        service_type: Union[TariffServiceType, str] = TariffServiceType.HORA
    ) -> Tariff:
        """Resolve inside an open unit of work"""
        vehicle_type = parse_enum(VehicleType, vehicle_type)
        service_type = parse_enum(TariffServiceType, service_type)

        tariffs = uow.tariffs.list(vehicle_type=vehicle_type, service_type=service_type, active_only=True)
        if not tariffs:
            self.logger.warning(f"No active {service_type.value} tariff for {vehicle_type.value}")
            raise TariffNotConfigured(vehicle_type, service_type)
        return tariffs[0]

    def compute_fee(self, vehicle_type: Union[VehicleType, str], elapsed_minutes: Union[int, float]) -> Money:
        """ceil(elapsed / unit) x price using the hourly tariff"""
        if elapsed_minutes < 0:
            raise ValidationError("Elapsed time cannot be negative", {"elapsed_minutes": elapsed_minutes})
        tariff = self.resolve(vehicle_type, TariffServiceType.HORA)
        return self.pricing_strategy.calculate_fee(tariff.price, tariff.time_unit_minutes, elapsed_minutes)

    def hourly_rate(self, vehicle_type: Union[VehicleType, str]) -> Money:
        return self.resolve(vehicle_type, TariffServiceType.HORA).price

    def hourly_rate_in(self, uow: UnitOfWork, vehicle_type: Union[VehicleType, str]) -> Money:
        return self.resolve_in(uow, vehicle_type, TariffServiceType.HORA).price

    def resolve_wash_price(self, vehicle_type: Union[VehicleType, str], wash_type: Union[WashType, str]) -> Money:
        """
        Price of a wash service
        Lookup order: "<vehicle>:<wash>" override, then the per-wash default
        """
        vehicle_type = parse_enum(VehicleType, vehicle_type)
        wash_type = parse_enum(WashType, wash_type, InvalidWashType)

        override_key = f"{vehicle_type.value}:{wash_type.value}"
        if override_key in self.settings.wash_price_overrides:
            amount = self.settings.wash_price_overrides[override_key]
        elif wash_type.value in self.settings.wash_prices:
            amount = self.settings.wash_prices[wash_type.value]
        else:
            raise InvalidWashType(
                f"No price configured for wash type '{wash_type.value}'",
                {"wash_type": wash_type.value}
            )
        return Money(amount, self.settings.currency)

    def quote(self, vehicle_type: Union[VehicleType, str], minutes: int) -> FeeQuoteDTO:
        """Fee for a hypothetical stay of the given length"""
        if minutes < 0:
            raise ValidationError("Minutes cannot be negative", {"minutes": minutes})
        tariff = self.resolve(vehicle_type, TariffServiceType.HORA)
        units = self.pricing_strategy.billable_units(minutes, tariff.time_unit_minutes)
        amount = self.pricing_strategy.calculate_fee(tariff.price, tariff.time_unit_minutes, minutes)
        return FeeQuoteDTO(
            vehicle_type=tariff.vehicle_type.value,
            minutes=minutes,
            tariff_id=tariff.id,
            tariff_name=tariff.name,
            unit_minutes=tariff.time_unit_minutes,
            unit_price=MoneyDTO.from_money(tariff.price),
            units=units,
            amount=MoneyDTO.from_money(amount)
        )

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def create_tariff(self, actor: RequestContext, request: TariffCreateDTO) -> Tariff:
        actor.require_admin("create tariffs")
        tariff = Tariff(
            name=request.name,
            vehicle_type=request.vehicle_type,
            service_type=request.service_type,
            price=Money(request.price, self.settings.currency),
            time_unit_minutes=request.time_unit_minutes,
            is_active=request.is_active,
            created_at=self.clock.now()
        )
        with self.uow_factory() as uow:
            uow.tariffs.add(tariff)
        self.logger.info(
            f"Tariff '{tariff.name}' created: {tariff.vehicle_type.value}/{tariff.service_type.value} "
            f"{tariff.price.format()} per {tariff.time_unit_minutes} min"
        )
        return tariff

    def update_tariff(self, actor: RequestContext, tariff_id: str, request: TariffUpdateDTO) -> Tariff:
        actor.require_admin("update tariffs")
        with self.uow_factory() as uow:
            tariff = self._get(uow, tariff_id)
            tariff.revise(
                name=request.name,
                price=Money(request.price, tariff.price.currency) if request.price is not None else None,
                time_unit_minutes=request.time_unit_minutes,
                is_active=request.is_active
            )
            uow.tariffs.update(tariff)
        self.logger.info(f"Tariff {tariff_id} updated")
        return tariff

    def delete_tariff(self, actor: RequestContext, tariff_id: str) -> None:
        actor.require_admin("delete tariffs")
        with self.uow_factory() as uow:
            self._get(uow, tariff_id)
            uow.tariffs.delete(tariff_id)
        self.logger.info(f"Tariff {tariff_id} deleted")

    def seed_defaults(self, actor: RequestContext) -> List[Tariff]:
        """
        Insert the starter hourly tariffs
        Vehicle types that already have any tariff are left alone
        """
        actor.require_admin("seed tariffs")
        created: List[Tariff] = []
        with self.uow_factory() as uow:
            for vehicle_type, price in DEFAULT_TARIFFS:
                if uow.tariffs.list(vehicle_type=vehicle_type):
                    self.logger.debug(f"Tariffs for {vehicle_type.value} exist, skipping seed")
                    continue
                tariff = Tariff(
                    name=f"Hora {vehicle_type}",
                    vehicle_type=vehicle_type,
                    service_type=TariffServiceType.HORA,
                    price=Money(price, self.settings.currency),
                    time_unit_minutes=60,
                    created_at=self.clock.now()
                )
                uow.tariffs.add(tariff)
                created.append(tariff)
        self.logger.info(f"Seeded {len(created)} default tariff(s)")
        return created

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_tariffs(
        self,
        vehicle_type: Optional[Union[VehicleType, str]] = None,
        service_type: Optional[Union[TariffServiceType, str]] = None
    ) -> List[Tariff]:
        vehicle_type = parse_enum(VehicleType, vehicle_type) if vehicle_type is not None else None
        service_type = parse_enum(TariffServiceType, service_type) if service_type is not None else None
        with self.uow_factory() as uow:
            return uow.tariffs.list(vehicle_type=vehicle_type, service_type=service_type)

    def get_tariff(self, tariff_id: str) -> Tariff:
        with self.uow_factory() as uow:
            return self._get(uow, tariff_id)

    def _get(self, uow: UnitOfWork, tariff_id: str) -> Tariff:
        tariff = uow.tariffs.get(tariff_id)
        if tariff is None:
            raise NotFound("Tariff", tariff_id)
        return tariff
