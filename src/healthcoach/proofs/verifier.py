"""
Threshold proofs over raw daily rows.

A requirement is (type, threshold, days): "average steps over the last 7
days ≥ 10,000". The average is taken over non-null values since
today − days, rounded to 1 decimal. RHR passes at or below its threshold,
everything else at or above.

The proof token is an opaque, traceable identifier for whoever awards the
credential to log against. It is not a cryptographic commitment.
"""
import hashlib
import logging
import secrets
import time
from dataclasses import dataclass
from datetime import date, timedelta
from statistics import mean
from typing import Any, Dict, Optional

from healthcoach.analysis.timeseries import metric_series, round_half_up
from healthcoach.config import Settings, get_settings
from healthcoach.errors import StoreUnavailableError
from healthcoach.models.common import MetricType, RequirementType, utcnow

logger = logging.getLogger(__name__)

REQUIREMENT_METRICS = {
    RequirementType.STEPS_AVG: MetricType.STEPS,
    RequirementType.SLEEP_AVG: MetricType.SLEEP_HOURS,
    RequirementType.RECOVERY_AVG: MetricType.RECOVERY,
    RequirementType.HRV_AVG: MetricType.HRV,
    RequirementType.RHR_AVG: MetricType.RHR,
}

LOWER_IS_BETTER = {RequirementType.RHR_AVG}

MSG_INSUFFICIENT = "Insufficient data to verify. Connect your wearable and sync data."
MSG_ERROR = "Error generating proof. Please try again."
MSG_SUCCESS = "Proof generated successfully!"


@dataclass
class Eligibility:
    eligible: bool
    actual_value: Optional[float] = None


@dataclass
class ProofResult:
    eligible: bool
    message: str
    requirement_type: RequirementType
    threshold: float
    proof_hash: Optional[str] = None
    actual_value: Optional[float] = None

    def award_payload(self) -> Dict[str, Any]:
        """What the awarding side records against the proof."""
        return {
            "proof_hash": self.proof_hash,
            "actual_value": self.actual_value,
            "requirement_type": self.requirement_type.value,
            "threshold": self.threshold,
        }


def _number(value: float) -> str:
    """12000.0 → "12,000", 7.5 → "7.5"."""
    return f"{value:,.1f}".rstrip("0").rstrip(".")


def format_requirement_type(requirement_type: RequirementType) -> str:
    return {
        RequirementType.STEPS_AVG: "average steps",
        RequirementType.SLEEP_AVG: "average sleep (hours)",
        RequirementType.RECOVERY_AVG: "average recovery score",
        RequirementType.HRV_AVG: "average HRV",
        RequirementType.RHR_AVG: "average resting heart rate",
    }.get(requirement_type, str(requirement_type))


def format_threshold(requirement_type: RequirementType, threshold: float) -> str:
    n = _number(threshold)
    return {
        RequirementType.STEPS_AVG: f"{n} steps",
        RequirementType.SLEEP_AVG: f"{n} hours",
        RequirementType.RECOVERY_AVG: f"{n}+ recovery",
        RequirementType.HRV_AVG: f"{n}+ HRV",
        RequirementType.RHR_AVG: f"{n} or lower RHR",
    }.get(requirement_type, n)


def meets_threshold(requirement_type: RequirementType, actual: float, threshold: float) -> bool:
    if requirement_type in LOWER_IS_BETTER:
        return actual <= threshold
    return actual >= threshold


def proof_token(user_id: str, requirement_type: RequirementType, value: float) -> str:
    """proof_<unix ms>_<16 hex chars>, unique per call."""
    timestamp_ms = int(time.time() * 1000)
    nonce = secrets.token_hex(8)
    digest = hashlib.sha256(
        f"{user_id}|{requirement_type.value}|{value}|{timestamp_ms}|{nonce}".encode()
    ).hexdigest()
    return f"proof_{timestamp_ms}_{digest[:16]}"


class ProofVerifier:
    def __init__(self, store, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()

    async def metric_average(
        self,
        user_id: str,
        requirement_type: RequirementType,
        days: int,
        today: Optional[date] = None,
    ) -> Optional[float]:
        """
        Mean of the requirement's metric since today − days, 1 decimal.

        Returns None when there are no non-null values.

        Raises:
            StoreUnavailableError: rows could not be read.
        """
        requirement_type = RequirementType(requirement_type)
        today = today or utcnow().date()
        rows = await self.store.get_rows(user_id, today - timedelta(days=days), ascending=False)
        values = [p.value for p in metric_series(rows, REQUIREMENT_METRICS[requirement_type])]
        if not values:
            return None
        return round_half_up(mean(values), 1)

    async def check_eligibility(
        self,
        user_id: str,
        requirement_type: RequirementType,
        threshold: float,
        days: int,
        today: Optional[date] = None,
    ) -> Eligibility:
        requirement_type = RequirementType(requirement_type)
        try:
            actual = await self.metric_average(user_id, requirement_type, days, today)
        except StoreUnavailableError as exc:
            logger.warning("Could not check eligibility (user %s): %s", user_id, exc)
            return Eligibility(eligible=False)
        if actual is None:
            return Eligibility(eligible=False)
        return Eligibility(
            eligible=meets_threshold(requirement_type, actual, threshold),
            actual_value=actual,
        )

    async def generate_proof(
        self,
        user_id: str,
        requirement_type: RequirementType,
        threshold: float,
        days: int,
        today: Optional[date] = None,
    ) -> ProofResult:
        requirement_type = RequirementType(requirement_type)
        try:
            actual = await self.metric_average(user_id, requirement_type, days, today)
        except StoreUnavailableError as exc:
            logger.error("Could not generate proof (user %s): %s", user_id, exc)
            return ProofResult(False, MSG_ERROR, requirement_type, threshold)

        if actual is None:
            return ProofResult(False, MSG_INSUFFICIENT, requirement_type, threshold)

        if not meets_threshold(requirement_type, actual, threshold):
            return ProofResult(
                eligible=False,
                message=(
                    f"Your {format_requirement_type(requirement_type)} is {actual:.1f}, "
                    f"which doesn't meet the {format_threshold(requirement_type, threshold)} threshold."
                ),
                requirement_type=requirement_type,
                threshold=threshold,
                actual_value=actual,
            )

        token = proof_token(user_id, requirement_type, actual)
        logger.info("Proof %s generated for %s (%s)", token, user_id, requirement_type.value)
        return ProofResult(
            eligible=True,
            message=MSG_SUCCESS,
            requirement_type=requirement_type,
            threshold=threshold,
            proof_hash=token,
            actual_value=actual,
        )
