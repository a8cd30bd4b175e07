"""
Базовые интерфейсы доставки.

Назначение:
- Единый контракт почтового транспорта (SMTP в prod, фейки в тестах)
- Возможность подменить провайдера без правок в job'ах
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass
class DeliveryResult:
    """
    Результат доставки.
    """

    ok: bool
    provider: str
    message_id: str | None = None
    error: str | None = None
    meta: dict[str, Any] | None = None


class MailProvider(Protocol):
    """
    Контракт почтового транспорта: to / subject / text / html -> доставка.
    """

    def send_mail(
        self,
        *,
        recipients: list[str],
        subject: str,
        text_body: str,
        html_body: str | None = None,
        ref_id: str | None = None,
    ) -> DeliveryResult: ...
