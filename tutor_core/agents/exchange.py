"""单次问答交换的编排。

ExchangeOrchestrator 把 ConversationState 与 TransportClient 串起来：

IDLE → SUBMITTING → STREAMING → SETTLED(success | error)

- 提交时同步追加 user 条目与空的 assistant 占位条目；
- Transport 每回调一个片段，就追加到占位条目的 content；
- Transport 最终失败时，用错误提示整体替换占位条目的 content。
同一时间只允许一个交换处于进行中。
"""

import enum
import logging
import time
from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

from tutor_core.domain.conversation import ConversationState
from tutor_core.domain.exceptions import FailureKind, classify_failure
from tutor_core.domain.models import ConversationContext, ExchangeEntry
from tutor_core.infrastructure.logging.logger import logger
from tutor_core.providers.base import TransportClient
from tutor_core.providers.transport import describe_failure


ERROR_MARKER = "⚠️ **Error**"

REMEDIATION_HINTS = (
    "Checking your internet connection",
    "Refreshing the page",
    "Trying again in a few moments",
)


class ExchangePhase(str, enum.Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    STREAMING = "streaming"
    SETTLED = "settled"


@dataclass
class ExchangeResult:
    """一次被接受的提交的结果。"""

    user_entry: ExchangeEntry
    assistant_entry: ExchangeEntry
    outcome: str  # "success" | "error"
    error_kind: Optional[FailureKind] = None

    @property
    def ok(self) -> bool:
        return self.outcome == "success"


def format_error_notice(reason: str) -> str:
    hints = "\n".join(f"- {hint}" for hint in REMEDIATION_HINTS)
    return f"{ERROR_MARKER}: {reason}\n\nYou can try:\n{hints}"


class ExchangeOrchestrator:
    def __init__(
        self,
        conversation: ConversationState,
        transport: TransportClient,
        context: ConversationContext,
    ):
        self._conversation = conversation
        self._transport = transport
        self._context = context
        self._phase = ExchangePhase.IDLE
        self._outcome: Optional[str] = None
        self._pending_id: Optional[str] = None
        self.input_text = ""

    # ---- 状态 ----

    @property
    def phase(self) -> ExchangePhase:
        return self._phase

    @property
    def outcome(self) -> Optional[str]:
        """最近一次 SETTLED 的结果，尚未完成过交换时为 None。"""

        return self._outcome

    @property
    def is_loading(self) -> bool:
        return self._phase in (ExchangePhase.SUBMITTING, ExchangePhase.STREAMING)

    @property
    def pending_entry_id(self) -> Optional[str]:
        return self._pending_id if self.is_loading else None

    def indicator_for(self, entry: ExchangeEntry) -> Optional[str]:
        """进行中的 assistant 条目：内容为空显示 "typing"，否则显示 "cursor"。"""

        if not self.is_loading or entry.id != self._pending_id:
            return None
        return "typing" if entry.content == "" else "cursor"

    def prefill(self, text: str) -> None:
        """把快捷问题填入输入框，不会自动提交。"""

        self.input_text = text

    # ---- 提交 ----

    async def submit(self, text: Optional[str] = None) -> Optional[ExchangeResult]:
        """提交一条问题。

        输入为空（去除空白后）或已有交换在进行中时直接忽略并返回 None。
        任何 Transport 异常都会被转换为 assistant 条目中的错误提示，不会向外抛出。
        """

        raw = self.input_text if text is None else text
        message = raw.strip()
        if not message or self.is_loading or self._conversation.discarded:
            return None

        user_entry = ExchangeEntry(role="user", content=message)
        assistant_entry = ExchangeEntry(role="assistant", content="")
        self._conversation.append(user_entry, origin="user")
        self._conversation.append(assistant_entry, origin="system")
        self.input_text = ""
        self._pending_id = assistant_entry.id
        self._phase = ExchangePhase.SUBMITTING

        start_time = time.time()
        log_ctx = {
            "trace_id": f"tr-{uuid4().hex}",
            "user_message_id": user_entry.id,
            "assistant_message_id": assistant_entry.id,
        }
        self._log(logging.INFO, "Exchange submitted", log_ctx, message_length=len(message))

        def on_fragment(fragment: str) -> None:
            self._conversation.update_trailing_content(
                assistant_entry.id, lambda content: content + fragment
            )

        def on_restart() -> None:
            self._conversation.update_trailing_content(assistant_entry.id, lambda _: "")
            assistant_entry.meta["fallback"] = True

        error_kind: Optional[FailureKind] = None
        try:
            self._phase = ExchangePhase.STREAMING
            await self._transport.send(message, self._context, on_fragment, on_restart=on_restart)
        except Exception as e:
            error_kind = classify_failure(e)
            notice = format_error_notice(describe_failure(error_kind, e))
            assistant_entry.meta["error"] = error_kind
            self._conversation.update_trailing_content(
                assistant_entry.id, lambda _: notice, origin="system"
            )
            self._log(logging.ERROR, "Exchange failed", log_ctx, kind=error_kind, error=str(e))
        finally:
            self._phase = ExchangePhase.SETTLED
            self._outcome = "error" if error_kind else "success"

        self._log(
            logging.INFO,
            "Exchange settled",
            log_ctx,
            outcome=self._outcome,
            elapsed_seconds=round(time.time() - start_time, 2),
            content_length=len(assistant_entry.content),
        )
        return ExchangeResult(
            user_entry=user_entry,
            assistant_entry=assistant_entry,
            outcome=self._outcome,
            error_kind=error_kind,
        )

    def close(self) -> None:
        """视图卸载时调用；之后到达的片段回调全部失效。"""

        self._conversation.discard()

    @staticmethod
    def _log(level: int, message: str, log_ctx: dict, **fields) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
