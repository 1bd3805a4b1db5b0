"""
E-mail delivery for account notifications.

Messages carry a single link of the form
``{return_url}?token={url-encoded token}&id={user id}``.
"""
import asyncio
import html
import logging
import smtplib
from email.message import EmailMessage
from urllib.parse import quote
from uuid import UUID

from estatehub.auth.errors import EmailErrors, Result
from estatehub.auth.identity import AccountActionType
from estatehub.auth.options import SmtpOptions

logger = logging.getLogger("estatehub.email")


def build_action_link(return_url: str, token: str, user_id: UUID) -> str:
    return f"{return_url}?token={quote(token, safe='')}&id={user_id}"


class EmailSmtpService:
    def __init__(self, options: SmtpOptions):
        self.options = options

    def _send(self, message: EmailMessage):
        with smtplib.SMTP(self.options.host, self.options.port) as server:
            if self.options.user and self.options.password:
                server.starttls()
                server.login(self.options.user, self.options.password)
            server.send_message(message)

    async def send_email(self, to_email: str, subject: str, body_html: str) -> Result[None]:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = f"EstateHub <{self.options.user or self.options.sender}>"
        message["To"] = to_email
        message.set_content(body_html, subtype="html")

        try:
            await asyncio.to_thread(self._send, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send '{subject}' to {to_email}: {e}")
            return Result.failure(EmailErrors.send_failed(to_email))
        return Result.success()

    async def send_email_confirmation(self, email: str, token: str, return_url: str, user_id: UUID) -> Result[None]:
        link = build_action_link(return_url, token, user_id)
        body = f"<a href='{html.escape(link, quote=True)}'>Click here to confirm your email</a>"
        return await self.send_email(email, "Email Confirmation", body)

    async def send_forget_password_token(self, email: str, token: str, return_url: str, user_id: UUID) -> Result[None]:
        link = build_action_link(return_url, token, user_id)
        body = f"<a href='{html.escape(link, quote=True)}'>Click here to reset your password</a>"
        return await self.send_email(email, "Forget Password Token", body)

    async def send_account_action_token(
        self, email: str, token: str, return_url: str, action: AccountActionType, user_id: UUID
    ) -> Result[None]:
        link = build_action_link(return_url, token, user_id)
        body = f"<a href='{html.escape(link, quote=True)}'>Click here to {action.value}</a>"
        return await self.send_email(email, action.value, body)
