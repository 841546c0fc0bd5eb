"""问答编排层。"""

from tutor_core.agents.exchange import ExchangeOrchestrator, ExchangePhase, ExchangeResult

__all__ = ["ExchangeOrchestrator", "ExchangePhase", "ExchangeResult"]
