"""
SMTP-отправка email.

Назначение:
- Напоминания о встречах
- Поддержка text + HTML

Важно:
- Не логировать содержимое писем
- Логировать только метаданные (кому, статус, message-id)
- У SMTP-соединения всегда есть таймаут (SMTP_TIMEOUT_SEC), медленный
  провайдер тормозит только текущую итерацию скана
"""

from __future__ import annotations

import smtplib
from email.message import EmailMessage
from email.utils import make_msgid

from venture_connect.common.config import get_settings
from venture_connect.common.logging import get_project_logger
from venture_connect.delivery.base import DeliveryResult, MailProvider
from venture_connect.delivery.results import fail_result, ok_result

log = get_project_logger()


class SMTPEmailProvider(MailProvider):
    def __init__(self) -> None:
        self.s = get_settings()

    def send_mail(
        self,
        *,
        recipients: list[str],
        subject: str,
        text_body: str,
        html_body: str | None = None,
        ref_id: str | None = None,
    ) -> DeliveryResult:
        if not recipients:
            return fail_result("smtp", "recipients_empty")

        if not self.s.smtp_host:
            return fail_result("smtp", "SMTP_HOST_not_set")

        msg = EmailMessage()
        msg["From"] = self.s.email_from
        msg["To"] = ", ".join(recipients)
        msg["Subject"] = subject
        msg["Message-ID"] = make_msgid()

        msg.set_content(text_body)
        if html_body:
            msg.add_alternative(html_body, subtype="html")

        try:
            with smtplib.SMTP(
                self.s.smtp_host, self.s.smtp_port, timeout=max(1, int(self.s.smtp_timeout_sec))
            ) as smtp:
                smtp.ehlo()
                if smtp.has_extn("starttls"):
                    smtp.starttls()
                    smtp.ehlo()

                if self.s.smtp_user and self.s.smtp_pass:
                    smtp.login(self.s.smtp_user, self.s.smtp_pass)

                smtp.send_message(msg)

            log.info(
                "email_sent",
                extra={"payload": {"ref_id": ref_id, "to": recipients, "provider": "smtp"}},
            )
            return ok_result("smtp", message_id=msg.get("Message-ID"))
        except (smtplib.SMTPException, OSError) as e:
            log.error(
                "email_send_failed",
                extra={"payload": {"ref_id": ref_id, "to": recipients, "err": str(e)[:200]}},
            )
            return fail_result("smtp", str(e))
