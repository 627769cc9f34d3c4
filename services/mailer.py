import html
import logging
import smtplib
from datetime import datetime
from email.message import EmailMessage
from typing import Callable, Iterable, Protocol

from config import Settings
from models import NoticeOutcome, NoticeReport, ShortlistEntry
from services.errors import MailerError

logger = logging.getLogger(__name__)

Template = Callable[[str, str, str], tuple[str, str]]


class MailSender(Protocol):
    def send(self, to: str, subject: str, html_body: str) -> bool: ...


class Mailer:
    """SMTP sender. `send` reports failure as False instead of raising."""

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        sender_name: str = "",
        use_ssl: bool = True,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.user = user
        # Gmail shows app passwords in groups of four
        self.password = "".join((password or "").split())
        self.sender_name = sender_name
        self.use_ssl = use_ssl
        self.timeout = timeout
        self._server: smtplib.SMTP | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "Mailer":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.email_user,
            password=settings.email_app_password,
            sender_name=f"{settings.hackathon_name} Jury",
            use_ssl=settings.smtp_use_ssl,
        )

    def _connect(self) -> smtplib.SMTP:
        if self.use_ssl:
            server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            server.starttls()
        try:
            server.login(self.user, self.password)
        except (smtplib.SMTPException, OSError):
            self._close(server)
            raise
        return server

    def _login(self) -> smtplib.SMTP:
        if not self.user or not self.password:
            raise MailerError("EMAIL_USER / EMAIL_APP_PASSWORD are not configured")
        try:
            return self._connect()
        except (smtplib.SMTPException, OSError) as e:
            raise MailerError(
                f"Email authentication failed: {e}. "
                "Please check your EMAIL_USER and EMAIL_APP_PASSWORD in .env file."
            ) from e

    def _close(self, server: smtplib.SMTP) -> None:
        try:
            server.quit()
        except (smtplib.SMTPException, OSError) as e:
            logger.debug("SMTP quit failed: %s", e)

    def verify(self) -> None:
        self._close(self._login())

    def __enter__(self) -> "Mailer":
        """Keep one logged-in connection for every `send` inside the block."""
        self._server = self._login()
        return self

    def __exit__(self, *exc) -> None:
        if self._server is not None:
            self._close(self._server)
            self._server = None

    def send(self, to: str, subject: str, html_body: str) -> bool:
        msg = EmailMessage()
        msg["From"] = f"{self.sender_name} <{self.user}>" if self.sender_name else self.user
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML-capable mail client.")
        msg.add_alternative(html_body, subtype="html")
        try:
            if self._server is not None:
                self._server.send_message(msg)
            else:
                server = self._connect()
                try:
                    server.send_message(msg)
                finally:
                    self._close(server)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Mail to %s failed: %s", to, e)
            return False
        logger.info("Mail sent to %s", to)
        return True


def _page(header: str, body: str, footer: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<body style="margin: 0; padding: 0; font-family: 'Segoe UI', Arial, sans-serif; background: #0a0a1a;">
    <div style="max-width: 600px; margin: 0 auto; background: #0f0f2e; border-radius: 16px; overflow: hidden;">
        <div style="background: #6366f1; padding: 40px 30px; text-align: center;">
            {header}
        </div>
        <div style="padding: 40px 30px; color: #e2e8f0;">
            {body}
        </div>
        <div style="text-align: center; padding: 20px 30px; color: #64748b; font-size: 12px;">
            {footer}
        </div>
    </div>
</body>
</html>
"""


def shortlist_email(team_name: str, hackathon_name: str, organizer_name: str) -> tuple[str, str]:
    team, hackathon, organizer = html.escape(team_name), html.escape(hackathon_name), html.escape(organizer_name)
    subject = f"Congratulations! You've been shortlisted for {hackathon_name}!"
    body = _page(
        f'<h1 style="color: white; margin: 0;">{hackathon}</h1>'
        '<p style="color: rgba(255,255,255,0.9);">First Screening Results</p>',
        f"<h2>Congratulations, Team {team}!</h2>"
        "<p>We are thrilled to inform you that your team has been <strong>shortlisted</strong> "
        f"for the next round of <strong>{hackathon}</strong>!</p>"
        "<p>Our panel was impressed by your idea and presentation. "
        "You will receive further details about the next round shortly.</p>"
        "<p>Please ensure all team members are available for the upcoming rounds.</p>"
        f"<p>Best wishes,<br><strong>{organizer}</strong></p>",
        f"<p>This is an automated notification from the {hackathon} Jury System.</p>"
        f"<p>&copy; {datetime.now().year} {organizer}. All rights reserved.</p>",
    )
    return subject, body


def rejection_email(team_name: str, hackathon_name: str, organizer_name: str) -> tuple[str, str]:
    team, hackathon, organizer = html.escape(team_name), html.escape(hackathon_name), html.escape(organizer_name)
    subject = f"Thank you for participating in {hackathon_name}"
    body = _page(
        f'<h1 style="color: white; margin: 0;">{hackathon}</h1>',
        f"<h2>Dear Team {team},</h2>"
        f"<p>Thank you for your participation in <strong>{hackathon}</strong>. "
        "We truly appreciate the effort and creativity you put into your submission.</p>"
        "<p>After careful evaluation, we regret to inform you that your team has not been "
        "shortlisted for the next round. The competition was intense, and the decision was not easy.</p>"
        "<p>We encourage you to keep innovating and look forward to seeing you in future events!</p>"
        f"<p>Best regards,<br><strong>{organizer}</strong></p>",
        f"<p>&copy; {datetime.now().year} {organizer}. All rights reserved.</p>",
    )
    return subject, body


def check_email(hackathon_name: str) -> tuple[str, str]:
    subject = "AI Jury Bot - Email Test Successful!"
    body = (
        '<div style="font-family: Arial; padding: 20px; background: #1a1a2e; color: #e2e8f0;">'
        '<h2 style="color: #a78bfa;">Email is working!</h2>'
        f"<p>Your {html.escape(hackathon_name)} jury email configuration is correct.</p>"
        f"<p>Sent at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}</p>"
        "</div>"
    )
    return subject, body


def send_notices(
    mailer: MailSender,
    teams: Iterable[ShortlistEntry],
    template: Template,
    hackathon_name: str,
    organizer_name: str,
) -> NoticeReport:
    report = NoticeReport()
    for team in teams:
        if not team.email or "@" not in team.email:
            report.errors.append(NoticeOutcome(
                team_name=team.team_name, email=team.email, error=f'Invalid email address: "{team.email}"'
            ))
            continue
        subject, body = template(team.team_name, hackathon_name, organizer_name)
        logger.info("Sending to: %s <%s>", team.team_name, team.email)
        if mailer.send(team.email, subject, body):
            report.results.append(NoticeOutcome(team_name=team.team_name, email=team.email, status="sent"))
        else:
            report.errors.append(NoticeOutcome(team_name=team.team_name, email=team.email, error="send failed"))
    logger.info("Notices: %d sent, %d failed", report.total_sent, len(report.errors))
    return report


def deliver_notices(
    mailer: Mailer,
    teams: Iterable[ShortlistEntry],
    template: Template,
    hackathon_name: str,
    organizer_name: str,
) -> NoticeReport:
    """Send every notice over a single SMTP login. Raises MailerError if the login fails."""
    with mailer:
        return send_notices(mailer, teams, template, hackathon_name, organizer_name)
