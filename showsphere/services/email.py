import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any, Dict

from jinja2 import Environment, FileSystemLoader, select_autoescape

from showsphere.core.config import Settings


logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates"


class EmailService:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.jinja_env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=select_autoescape(["html", "xml"]),
        )

    @property
    def configured(self) -> bool:
        return bool(self.settings.SMTP_HOST and self.settings.SMTP_PORT)

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        tpl = self.jinja_env.get_template(template_name)
        return tpl.render(**context)

    def _build_message(self, to_email: str, subject: str, html_content: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.settings.SENDER_EMAIL or self.settings.SMTP_USER or ""
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(html_content, "html"))
        return msg

    def _send_sync(self, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(self.settings.SMTP_HOST, int(self.settings.SMTP_PORT),
                          timeout=self.settings.SMTP_TIMEOUT_SECONDS) as server:
            server.ehlo()
            server.starttls()
            server.ehlo()
            if self.settings.SMTP_USER and self.settings.SMTP_PASSWORD:
                server.login(self.settings.SMTP_USER, self.settings.SMTP_PASSWORD)
            server.send_message(msg)

    async def send_email(self, to_email: str, subject: str, html_content: str) -> bool:
        if not self.configured:
            logger.warning("SMTP host/port not configured, email not sent")
            return False
        if not to_email:
            logger.warning(f"No recipient for '{subject}', email not sent")
            return False

        msg = self._build_message(to_email, subject, html_content)
        try:
            await asyncio.wait_for(
                asyncio.to_thread(self._send_sync, msg),
                timeout=self.settings.SMTP_TIMEOUT_SECONDS + 5
            )
        except asyncio.TimeoutError:
            logger.error(f"Sending '{subject}' to {to_email} timed out")
            return False
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Email to {to_email} failed: {type(e).__name__}: {e}", exc_info=True)
            return False
        logger.info(f"Email '{subject}' sent to {to_email}")
        return True
