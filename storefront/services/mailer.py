# storefront/services/mailer.py
import smtplib
from email.message import EmailMessage

from flask import current_app


def send_mail(to_addr: str, subject: str, body: str) -> bool:
    """Send a plain-text email. Returns False when delivery is suppressed or fails."""
    cfg = current_app.config
    if cfg.get("MAIL_SUPPRESS_SEND"):
        current_app.logger.info("mail to %s suppressed: %s", to_addr, subject)
        return False

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = cfg.get("MAIL_SENDER") or cfg.get("MAIL_USERNAME")
    msg["To"] = to_addr
    msg.set_content(body)

    user, password = cfg.get("MAIL_USERNAME"), cfg.get("MAIL_PASSWORD")
    try:
        with smtplib.SMTP(cfg["MAIL_SERVER"], cfg["MAIL_PORT"], timeout=15) as server:
            if user and password:
                server.starttls()
                server.login(user, password)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError):
        current_app.logger.exception("mail delivery to %s failed", to_addr)
        return False

    current_app.logger.info("mail sent to %s: %s", to_addr, subject)
    return True


def send_otp(to_addr: str, otp: str, ttl_minutes: int) -> bool:
    body = (
        f"Your password reset code is {otp}.\n\n"
        f"It expires in {ttl_minutes} minutes. If you did not request a reset, ignore this email."
    )
    return send_mail(to_addr, "Password reset code", body)
