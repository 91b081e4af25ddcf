"""
Advisory Client Module

REST client for the external reputation and financial-advice service.
The engine never depends on its answers: when the service is disabled or
unreachable the client returns a neutral fallback result.
"""

import httpx
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from .reporting import ClientCreditRecord, ProviderFinancialSummary

logger = logging.getLogger("recaudo.advisory")

RECOMMENDATIONS = ("Excelente", "Bueno", "Regular", "Malo", "Muy Malo")


@dataclass
class ReputationResult:
    """Client reputation analysis"""
    risk_score: int        # 0 (no risk) - 100
    summary: str
    recommendation: str    # One of RECOMMENDATIONS
    is_fallback: bool = False
    latency_ms: float = 0.0


@dataclass
class FinancialAdvice:
    """One piece of advice for a provider"""
    type: str              # warning, suggestion, info
    title: str
    message: str
    is_fallback: bool = False


@dataclass
class AdviceResult:
    advice: List[FinancialAdvice] = field(default_factory=list)
    is_fallback: bool = False


class AdvisoryClient:
    """REST client for the reputation/advice service"""

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 10.0,
        api_key: Optional[str] = None,
        fallback_recommendation: str = "Regular",
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.api_key = api_key
        self.enabled = bool(self.base_url)
        self.fallback_recommendation = fallback_recommendation
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def _headers(self) -> dict:
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def analyze_client_reputation(self, client_id: str,
                                  history: List[ClientCreditRecord]) -> ReputationResult:
        """Score a client's repayment behaviour from their credit history"""
        if not self.enabled:
            return self._reputation_fallback("Reputation analysis is disabled", 0.0)

        request = {
            "client_id": client_id,
            "credit_history": [
                {
                    "id": record.credit_id,
                    "principal": str(record.principal),
                    "state": record.state.value,
                    "installment_count": record.installment_count,
                    "paid_installments": record.paid_installments,
                    "missed_payment_days": record.missed_payment_days,
                    "days_late": record.days_late,
                }
                for record in history
            ],
        }

        start = time.time()
        try:
            response = self._client.post(f"{self.base_url}/reputation", json=request,
                                         headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"Advisory service connection failed: {e}")
            return self._reputation_fallback("Reputation service unavailable", 0.0)

        latency_ms = (time.time() - start) * 1000
        if response.status_code != 200:
            logger.warning(f"Advisory service returned {response.status_code}: {response.text}")
            return self._reputation_fallback("Reputation service unavailable", latency_ms)

        data = response.json()
        recommendation = data.get("recommendation", self.fallback_recommendation)
        if recommendation not in RECOMMENDATIONS:
            logger.warning(f"Unknown recommendation from advisory service: {recommendation}")
            recommendation = self.fallback_recommendation

        return ReputationResult(
            risk_score=max(0, min(100, int(data.get("risk_score", 50)))),
            summary=data.get("summary", ""),
            recommendation=recommendation,
            latency_ms=latency_ms,
        )

    def get_financial_advice(self, summary: ProviderFinancialSummary) -> AdviceResult:
        """Ask for advice on a provider's capital position"""
        if not self.enabled:
            return self._advice_fallback()

        request = {
            "base_capital": str(summary.base_capital),
            "active_capital": str(summary.active_capital),
            "collected_commission": str(summary.collected_commission),
            "total_active_clients": summary.active_client_count,
            "clients_in_arrears": summary.clients_in_arrears,
        }

        try:
            response = self._client.post(f"{self.base_url}/advice", json=request,
                                         headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"Advisory service connection failed: {e}")
            return self._advice_fallback()

        if response.status_code != 200:
            logger.warning(f"Advisory service returned {response.status_code}: {response.text}")
            return self._advice_fallback()

        items = response.json().get("advice", [])
        return AdviceResult(advice=[
            FinancialAdvice(type=item.get("type", "info"), title=item.get("title", ""),
                            message=item.get("message", ""))
            for item in items
        ])

    def _reputation_fallback(self, reason: str, latency_ms: float) -> ReputationResult:
        return ReputationResult(
            risk_score=50,
            summary=reason,
            recommendation=self.fallback_recommendation,
            is_fallback=True,
            latency_ms=latency_ms,
        )

    def _advice_fallback(self) -> AdviceResult:
        return AdviceResult(advice=[], is_fallback=True)

    def health_check(self) -> bool:
        """Check if the advisory service is healthy"""
        if not self.enabled:
            return False
        try:
            r = self._client.get(f"{self.base_url}/health")
        except httpx.HTTPError:
            return False
        return r.status_code == 200

    def close(self):
        """Close the HTTP client"""
        self._client.close()


class MockAdvisoryClient(AdvisoryClient):
    """Mock client for testing: scores from missed days and closed-credit history"""

    def __init__(self, **kwargs):
        super().__init__(base_url="http://advisory.mock", **kwargs)

    def analyze_client_reputation(self, client_id: str,
                                  history: List[ClientCreditRecord]) -> ReputationResult:
        late = sum(max(r.days_late, r.missed_payment_days) for r in history)
        if late == 0:
            return ReputationResult(10, "Pays on time", "Excelente")
        if late <= 5:
            return ReputationResult(40, "Occasional delays", "Bueno")
        if late <= 15:
            return ReputationResult(60, "Frequent delays", "Regular")
        return ReputationResult(85, "Chronic arrears", "Malo")

    def get_financial_advice(self, summary: ProviderFinancialSummary) -> AdviceResult:
        if summary.clients_in_arrears > 0:
            return AdviceResult(advice=[FinancialAdvice(
                "warning", "Clients in arrears",
                f"{summary.clients_in_arrears} clients are behind on their payments."
            )])
        return AdviceResult(advice=[FinancialAdvice("info", "Healthy portfolio", "No clients are late.")])

    def health_check(self) -> bool:
        return True
