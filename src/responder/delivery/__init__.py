"""Reply delivery through the SendGrid v3 API."""

from responder.delivery.sendgrid import SendGridClient, build_mail_payload

__all__ = ["SendGridClient", "build_mail_payload"]
