import logging
import math
from typing import Optional

import httpx

from app.carbon_model import (
    DEFAULT_COMMUTE_FACTORS,
    DEFAULT_ELECTRICITY_FACTOR,
    EmissionFactorSet,
    EmissionsEstimator,
    RemoteEstimateError,
    RemoteEstimateRequest,
)
from app.settings import Settings, settings

logger = logging.getLogger(__name__)


class ClimatiqClient:
    """
    Calls the Climatiq estimate endpoint once per request, with a bounded timeout
    and no retry. Every failure is raised as RemoteEstimateError.

    The request contract is configuration: `factor_field` is "activity_id" for
    the /data/v1/estimate API and "id" for the legacy /estimate API. `region`
    applies to commute factors; the grid factor uses `electricity_region`.
    """

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str,
        factor_field: str = "activity_id",
        region: Optional[str] = "GB",
        electricity_region: Optional[str] = None,
        data_version: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.factor_field = factor_field
        self.region = region
        self.electricity_region = electricity_region
        self.data_version = data_version
        self.timeout = timeout
        self._transport = transport

    def build_payload(self, request: RemoteEstimateRequest) -> dict:
        emission_factor = {self.factor_field: request.factor_id}
        region = self.electricity_region if request.kind == "electricity" else self.region
        if region:
            emission_factor["region"] = region
        if self.data_version:
            emission_factor["data_version"] = self.data_version
        return {"emission_factor": emission_factor, "parameters": dict(request.parameters)}

    async def __call__(self, request: RemoteEstimateRequest) -> float:
        if not self.api_key:
            raise RemoteEstimateError("CLIMATIQ_API_KEY is not configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(
                    self.api_url, json=self.build_payload(request), headers=headers
                )
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                raise RemoteEstimateError(
                    f"Climatiq returned {e.response.status_code}: {e.response.text}"
                ) from e
            except httpx.TimeoutException as e:
                raise RemoteEstimateError(f"Climatiq request timed out after {self.timeout}s") from e
            except httpx.HTTPError as e:
                raise RemoteEstimateError(f"Error communicating with Climatiq: {e}") from e
            except ValueError as e:
                raise RemoteEstimateError("Climatiq returned invalid JSON") from e

        co2e = data.get("co2e") if isinstance(data, dict) else None
        if isinstance(co2e, bool) or not isinstance(co2e, (int, float)) or not math.isfinite(co2e) or co2e < 0:
            raise RemoteEstimateError(f"Climatiq response has no usable co2e: {data!r}")
        return float(co2e)


def build_estimator(config: Settings) -> EmissionsEstimator:
    commute = dict(DEFAULT_COMMUTE_FACTORS)
    commute.update(config.climatiq_commute_factors)
    factors = EmissionFactorSet(
        commute=commute,
        electricity=config.climatiq_electricity_factor or DEFAULT_ELECTRICITY_FACTOR,
    )
    client = ClimatiqClient(
        api_key=config.climatiq_api_key,
        api_url=config.climatiq_api_url,
        factor_field=config.climatiq_factor_field,
        region=config.climatiq_region,
        electricity_region=config.climatiq_electricity_region,
        data_version=config.climatiq_data_version,
        timeout=config.climatiq_timeout,
    )
    if not config.climatiq_api_key:
        logger.warning("CLIMATIQ_API_KEY is not set; emissions will use fallback factors.")
    return EmissionsEstimator(remote=client, factors=factors)


_estimator: Optional[EmissionsEstimator] = None


def get_estimator() -> EmissionsEstimator:
    # Dependency for routes; tests override it with a stubbed estimator
    global _estimator
    if _estimator is None:
        _estimator = build_estimator(settings)
    return _estimator
