import logging
import math
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

ACTIVITY_TYPES = ("commute", "food", "electricity")

# --- Commute ---
# Remote emission-factor identifiers per transport mode. None means zero emissions.
DEFAULT_COMMUTE_FACTORS: Dict[str, Optional[str]] = {
    "car": "passenger_ferry-route_type_car_passenger-fuel_source_na",
    "bus": "passenger_vehicle-vehicle_type_local_bus-fuel_source_na-distance_na-engine_size_na",
    "train": "passenger_train-route_type_light_rail_and_tram-fuel_source_na",
    "plane": "passenger_vehicle-vehicle_type_aircraft-fuel_source_na-distance_na",
    "motorcycle": "passenger_vehicle-vehicle_type_upper_medium_car-fuel_source_na-engine_size_na-vehicle_age_na-vehicle_weight_na",
    "bicycle": None,
    "walking": None,
}

# kg CO2e per km, used when the remote estimate is unavailable
COMMUTE_FALLBACK_RATES = {
    "car": 0.21,
    "bus": 0.089,
    "train": 0.041,
    "plane": 0.255,
    "motorcycle": 0.113,
    "bicycle": 0.0,
    "walking": 0.0,
}

ZERO_EMISSION_MODES = ("bicycle", "walking")
DEFAULT_TRANSPORT_MODE = "car"

# --- Food ---
# kg CO2e per kg of food
FOOD_EMISSION_FACTORS = {
    "beef": 27.0,
    "pork": 12.1,
    "chicken": 6.9,
    "fish": 5.1,
    "dairy": 3.2,
    "vegetables": 2.0,
    "fruits": 1.1,
    "grains": 2.7,
}
DEFAULT_FOOD_FACTOR = 2.0
DEFAULT_FOOD_TYPE = "vegetables"
GRAMS_PER_KG = 1000.0
KG_PER_POUND = 0.453592

# --- Electricity ---
DEFAULT_ELECTRICITY_FACTOR = "electricity-supply_grid-source_residual_mix"
ELECTRICITY_FALLBACK_RATE = 0.475  # kg CO2e per kWh
KWH_PER_MWH = 1000.0


class InvalidActivityError(ValueError):
    """Raised when an activity cannot be estimated because its input is invalid."""


class RemoteEstimateError(Exception):
    """Raised by a remote estimator when it cannot produce a CO2e figure."""


@dataclass(frozen=True)
class RemoteEstimateRequest:
    factor_id: str
    parameters: Dict[str, Any]
    kind: Optional[str] = None


RemoteEstimator = Callable[[RemoteEstimateRequest], Awaitable[float]]


@dataclass(frozen=True)
class EmissionFactorSet:
    commute: Mapping[str, Optional[str]] = field(
        default_factory=lambda: dict(DEFAULT_COMMUTE_FACTORS)
    )
    electricity: str = DEFAULT_ELECTRICITY_FACTOR

    def commute_factor(self, mode: str) -> Optional[str]:
        if mode in self.commute:
            return self.commute[mode]
        return self.commute.get(DEFAULT_TRANSPORT_MODE)


@dataclass
class Estimate:
    co2e: float
    fields: Dict[str, Any]


def parse_quantity(value: Any, label: str) -> float:
    """
    Converts a caller-supplied quantity to a non-negative float.
    Numeric strings are accepted; anything else that is not a finite number >= 0 is rejected.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidActivityError(f"{label} is required")
    if isinstance(value, bool):
        raise InvalidActivityError(f"{label} must be a non-negative number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidActivityError(f"{label} must be a non-negative number")
    if not math.isfinite(number) or number < 0:
        raise InvalidActivityError(f"{label} must be a non-negative number")
    return number


def _normalize_key(value: Optional[str], default: str) -> str:
    if value is None or not str(value).strip():
        return default
    return str(value).strip().lower()


def to_kilograms(quantity: float, unit: str) -> float:
    if unit == "g":
        return quantity / GRAMS_PER_KG
    if unit == "lb":
        return quantity * KG_PER_POUND
    # kg and anything unrecognised
    return quantity


def to_kwh(energy: float, unit: str) -> float:
    if unit == "mwh":
        return energy * KWH_PER_MWH
    return energy


class EmissionsEstimator:
    """
    Estimates kg CO2e for commute, food and electricity activities.

    Commute and electricity try the remote estimator first and fall back to
    static rates on any failure. Food is always computed locally.
    """

    def __init__(
        self,
        remote: Optional[RemoteEstimator] = None,
        factors: Optional[EmissionFactorSet] = None,
    ):
        self.remote = remote
        self.factors = factors or EmissionFactorSet()

    async def _try_remote(self, request: RemoteEstimateRequest) -> Optional[float]:
        if self.remote is None:
            return None
        try:
            co2e = await self.remote(request)
            if isinstance(co2e, bool) or not isinstance(co2e, (int, float)):
                raise RemoteEstimateError(f"non-numeric co2e {co2e!r}")
            if not math.isfinite(co2e) or co2e < 0:
                raise RemoteEstimateError(f"co2e must be a finite non-negative number, got {co2e!r}")
            return float(co2e)
        except RemoteEstimateError as e:
            logger.warning(
                "Remote estimate failed for %s (factor=%s): %s", request.kind, request.factor_id, e
            )
        except Exception:
            logger.exception(
                "Unexpected error from remote estimator for %s (factor=%s)", request.kind, request.factor_id
            )
        return None

    async def estimate_commute(self, distance_km: Any, transport_mode: Optional[str] = None) -> float:
        distance = parse_quantity(distance_km, "Distance")
        mode = _normalize_key(transport_mode, DEFAULT_TRANSPORT_MODE)

        if mode in ZERO_EMISSION_MODES:
            return 0.0

        factor_id = self.factors.commute_factor(mode)
        if factor_id:
            co2e = await self._try_remote(
                RemoteEstimateRequest(
                    factor_id=factor_id,
                    kind="commute",
                    parameters={"distance": distance, "distance_unit": "km"},
                ),
            )
            if co2e is not None:
                return co2e

        rate = COMMUTE_FALLBACK_RATES.get(mode, COMMUTE_FALLBACK_RATES[DEFAULT_TRANSPORT_MODE])
        return distance * rate

    async def estimate_food(self, food_type: Optional[str], quantity: Any, unit: Optional[str] = "kg") -> float:
        amount = parse_quantity(quantity, "Quantity")
        kilograms = to_kilograms(amount, _normalize_key(unit, "kg"))
        factor = FOOD_EMISSION_FACTORS.get(_normalize_key(food_type, DEFAULT_FOOD_TYPE), DEFAULT_FOOD_FACTOR)
        return kilograms * factor

    async def estimate_electricity(self, energy_consumed: Any, energy_unit: Optional[str] = "kwh") -> float:
        energy = parse_quantity(energy_consumed, "Energy consumed")
        kwh = to_kwh(energy, _normalize_key(energy_unit, "kwh"))

        co2e = await self._try_remote(
            RemoteEstimateRequest(
                factor_id=self.factors.electricity,
                kind="electricity",
                parameters={"energy": kwh, "energy_unit": "kWh"},
            ),
        )
        if co2e is not None:
            return co2e
        return kwh * ELECTRICITY_FALLBACK_RATE

    async def estimate(self, activity_type: Optional[str], fields: Mapping[str, Any]) -> Estimate:
        """
        Validates and normalizes the kind-specific fields of an activity, then
        estimates its emissions. Returns the CO2e together with the normalized
        fields so the caller can store exactly what was estimated.
        """
        if not activity_type:
            raise InvalidActivityError("Activity type is required")
        if activity_type not in ACTIVITY_TYPES:
            raise InvalidActivityError("Invalid activity type")

        if activity_type == "commute":
            if fields.get("distance") is None:
                raise InvalidActivityError("Distance is required for commute")
            normalized = {
                "distance": parse_quantity(fields.get("distance"), "Distance"),
                "transport_mode": fields.get("transport_mode") or DEFAULT_TRANSPORT_MODE,
            }
            co2e = await self.estimate_commute(normalized["distance"], normalized["transport_mode"])

        elif activity_type == "food":
            if fields.get("quantity") is None:
                raise InvalidActivityError("Quantity is required for food activity")
            normalized = {
                "quantity": parse_quantity(fields.get("quantity"), "Quantity"),
                "food_type": fields.get("food_type") or DEFAULT_FOOD_TYPE,
                "unit": fields.get("unit") or "kg",
            }
            co2e = await self.estimate_food(normalized["food_type"], normalized["quantity"], normalized["unit"])

        else:
            if fields.get("energy_consumed") is None:
                raise InvalidActivityError("Energy consumed is required for electricity")
            normalized = {
                "energy_consumed": parse_quantity(fields.get("energy_consumed"), "Energy consumed"),
                "energy_unit": fields.get("energy_unit") or "kwh",
            }
            co2e = await self.estimate_electricity(normalized["energy_consumed"], normalized["energy_unit"])

        return Estimate(co2e=co2e, fields=normalized)
