"""Account registration and email activation."""

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from urllib.parse import urlencode

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core import settings
from storefront.models.user import User
from storefront.services.auth import IdentityStoreError
from storefront.services.user import UserService

logger = logging.getLogger(__name__)


def build_activation_link(token: str) -> str:
    return f"{settings.frontend_url.rstrip('/')}/activation?{urlencode({'token': token})}"


class ActivationMailer:
    """Delivers activation links by SMTP, or logs them when SMTP is not configured."""

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        sender: str | None = None,
    ):
        self.host = host if host is not None else settings.smtp_host
        self.port = port or settings.smtp_port
        self.username = username if username is not None else settings.smtp_username
        self.password = password if password is not None else settings.smtp_password
        self.sender = sender or settings.smtp_from

    def build_message(self, user: User, link: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = "Activate your account"
        msg["From"] = self.sender
        msg["To"] = user.email
        msg.set_content(
            f"Hello {user.name},\n\n"
            f"Activate your account by opening:\n{link}\n\n"
            "If you did not register, ignore this email."
        )
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=10) as server:
            server.ehlo()
            if server.has_extn("starttls"):
                server.starttls()
                server.ehlo()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)

    async def send_activation(self, user: User) -> bool:
        """Send the activation link. Returns False if delivery failed."""
        if not user.activation_token:
            return False
        link = build_activation_link(user.activation_token)

        if not self.host:
            logger.info(f"SMTP not configured; activation link for {user.email}: {link}")
            return True

        try:
            await asyncio.to_thread(self._deliver, self.build_message(user, link))
        except (smtplib.SMTPException, OSError):
            logger.exception(f"Failed to send activation email to {user.email}")
            return False
        logger.info(f"Activation email sent to {user.email}")
        return True


class RegistrationService:
    """Creates unverified accounts and activates them by token."""

    def __init__(self, session: AsyncSession, mailer: ActivationMailer | None = None):
        self.users = UserService(session)
        self.mailer = mailer or ActivationMailer()

    async def register(self, name: str, email: str, password: str) -> User:
        try:
            user = await self.users.create(name=name, email=email, password=password)
        except SQLAlchemyError as e:
            logger.exception("Could not store new account")
            raise IdentityStoreError("Could not save account") from e
        await self.mailer.send_activation(user)
        return user

    async def activate(self, token: str) -> User:
        try:
            return await self.users.activate(token)
        except SQLAlchemyError as e:
            logger.exception("Could not activate account")
            raise IdentityStoreError("Could not save account") from e
